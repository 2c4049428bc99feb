"""CloudWatch metric alarm listing, creation and deletion."""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from cloudclass.core import terminal
from cloudclass.resources.arns import ArnParseError, parse_arn
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import Alarm


logger = logging.getLogger(__name__)


OPERATORS = {
    "GreaterThanThreshold": ">",
    "GreaterThanOrEqualToThreshold": ">=",
    "LessThanThreshold": "<",
    "LessThanOrEqualToThreshold": "<=",
}

UNKNOWN_ACTION = "??????"

# DeleteAlarms takes at most this many names per request
DELETE_BATCH_SIZE = 100


def action_name(arn: str) -> str:
    """Scaling policy name of an alarm action ARN."""
    try:
        return parse_arn(arn).policy_name
    except ArnParseError:
        return UNKNOWN_ACTION


def format_trigger(alarm: Dict[str, Any]) -> str:
    """Human readable trigger, e.g. ``CPUUtilization >= 75 (Average)``."""
    operator = OPERATORS.get(alarm.get("ComparisonOperator", ""), "")
    threshold = int(alarm.get("Threshold", 0) or 0)
    return f"{alarm.get('MetricName', '')} {operator} {threshold} ({alarm.get('Statistic', '')})"


def marshal_alarm(alarm: Dict[str, Any], region: str) -> Alarm:
    action_arns = list(alarm.get("AlarmActions", []))
    return Alarm(
        name=alarm.get("AlarmName", ""),
        arn=alarm.get("AlarmArn", ""),
        description=alarm.get("AlarmDescription", ""),
        state=alarm.get("StateValue", ""),
        trigger=format_trigger(alarm),
        period=str(alarm.get("Period", 0)),
        eval_periods=str(alarm.get("EvaluationPeriods", 0)),
        action_arns=action_arns,
        action_names=", ".join(action_name(arn) for arn in action_arns),
        dimensions=", ".join(
            f"{d.get('Name', '')} = {d.get('Value', '')}" for d in alarm.get("Dimensions", [])
        ),
        namespace=alarm.get("Namespace", ""),
        region=region,
    )


def alarm_params(
    name: str,
    cfg: Any,
    alarm_actions: List[str],
    dimensions: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    """PutMetricAlarm parameters for an alarm class."""
    params = {
        "AlarmName": name,
        "AlarmDescription": cfg.alarm_description,
        "ActionsEnabled": cfg.actions_enabled,
        "AlarmActions": list(alarm_actions),
        "OKActions": list(cfg.ok_actions),
        "InsufficientDataActions": list(cfg.insufficient_data_actions),
        "MetricName": cfg.metric_name,
        "Namespace": cfg.namespace,
        "Statistic": cfg.statistic,
        "Period": cfg.period,
        "EvaluationPeriods": cfg.evaluation_periods,
        "Threshold": float(cfg.threshold),
        "ComparisonOperator": cfg.comparison_operator,
    }
    if dimensions:
        params["Dimensions"] = dimensions
    if cfg.unit:
        params["Unit"] = cfg.unit
    return params


class AlarmManager(RegionalResourceManager):
    """Lists, creates and deletes CloudWatch metric alarms."""

    label = "Alarms"

    def describe_region(self, region: str) -> List[Alarm]:
        cloudwatch = self.client("cloudwatch", region)
        return [
            marshal_alarm(alarm, region)
            for alarm in self.paginate(cloudwatch, "describe_alarms", "MetricAlarms")
        ]

    def put(self, region: str, params: Dict[str, Any], dry_run: bool = False) -> None:
        """Send one PutMetricAlarm request, or print it on a dry run."""
        if dry_run:
            terminal.print_params(params)
            return

        cloudwatch = self.client("cloudwatch", region)
        self.call(cloudwatch.put_metric_alarm, **params)
        logger.info("Put metric alarm %s in %s", params["AlarmName"], region)
        terminal.delta(f"Created Alarm named [{params['AlarmName']}] in [{region}]")

    def create(self, class_name: str, region: str, dry_run: bool = False) -> Dict[str, Any]:
        """Create an alarm from an alarm class in one region.

        Alarm actions are passed through as given in the class.

        Returns:
            The PutMetricAlarm parameters used

        Raises:
            InvalidRegionError: When region is not valid
            ClassNotFoundError: When the class does not exist
        """
        self.announce_dry_run(dry_run)
        self.regions.require_region(region)

        cfg = self.store.load("alarms", class_name)
        terminal.information(f"Found CloudWatch Alarm class configuration for [{class_name}]")

        params = alarm_params(class_name, cfg, cfg.alarm_actions)
        self.put(region, params, dry_run)

        terminal.information("Done!")
        return params

    def delete(
        self,
        search: str,
        region: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> List[Alarm]:
        """Delete every alarm matching search, batched per region."""
        alarms = self.select_for_change(
            search,
            region,
            "Are you sure you want to delete these Alarms?",
            dry_run,
            force,
        )

        by_region: "OrderedDict[str, List[str]]" = OrderedDict()
        for alarm in alarms:
            by_region.setdefault(alarm.region, []).append(alarm.name)

        for alarm_region, names in by_region.items():
            if dry_run:
                terminal.print_params({"AlarmNames": names, "Region": alarm_region})
                continue
            cloudwatch = self.client("cloudwatch", alarm_region)
            for start in range(0, len(names), DELETE_BATCH_SIZE):
                self.call(
                    cloudwatch.delete_alarms,
                    AlarmNames=names[start:start + DELETE_BATCH_SIZE],
                )
            logger.info("Deleted %d alarms in %s", len(names), alarm_region)
            terminal.delta(f"Deleted Alarms [{', '.join(names)}] in [{alarm_region}]!")

        terminal.information("Done!")
        return alarms
