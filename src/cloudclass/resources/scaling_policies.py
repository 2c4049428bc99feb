"""Simple scaling policies attached to auto-scaling groups."""

import logging
from typing import Any, Dict, List

from cloudclass.core import terminal
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import AutoScaleGroup, ScalingPolicy


logger = logging.getLogger(__name__)


def dry_run_policy_arn(region: str, group_name: str, policy_name: str) -> str:
    """Placeholder ARN handed to alarms when no policy was really created."""
    return (
        f"arn:aws:autoscaling:{region}:000000000000:scalingPolicy:dry-run:"
        f"autoScalingGroupName/{group_name}:policyName/{policy_name}"
    )


def marshal_policy(policy: Dict[str, Any], region: str) -> ScalingPolicy:
    return ScalingPolicy(
        name=policy.get("PolicyName", ""),
        arn=policy.get("PolicyARN", ""),
        auto_scaling_group_name=policy.get("AutoScalingGroupName", ""),
        adjustment_type=policy.get("AdjustmentType", ""),
        scaling_adjustment=int(policy.get("ScalingAdjustment", 0) or 0),
        cooldown=int(policy.get("Cooldown", 0) or 0),
        alarm_names=", ".join(a.get("AlarmName", "") for a in policy.get("Alarms", [])),
        region=region,
    )


class ScalingPolicyManager(RegionalResourceManager):
    """Lists scaling policies and creates them from scaling policy classes."""

    label = "Scaling Policies"

    def describe_region(self, region: str) -> List[ScalingPolicy]:
        autoscaling = self.client("autoscaling", region)
        return [
            marshal_policy(policy, region)
            for policy in self.paginate(autoscaling, "describe_policies", "ScalingPolicies")
        ]

    def create(self, name: str, cfg: Any, group: AutoScaleGroup, dry_run: bool = False) -> str:
        """Put a scaling policy on one auto-scaling group.

        Args:
            name: Scaling policy class name, used as the policy name
            cfg: ScalingPolicyClass to apply
            group: Target auto-scaling group
            dry_run: Print the request instead of sending it

        Returns:
            The policy ARN, or a placeholder ARN on a dry run
        """
        params = {
            "AutoScalingGroupName": group.name,
            "PolicyName": name,
            "AdjustmentType": cfg.adjustment_type,
            "ScalingAdjustment": cfg.scaling_adjustment,
            "Cooldown": cfg.cooldown,
        }

        if dry_run:
            terminal.print_params(params)
            return dry_run_policy_arn(group.region, group.name, name)

        autoscaling = self.client("autoscaling", group.region)
        response = self.call(autoscaling.put_scaling_policy, **params)
        logger.info("Put scaling policy %s on %s in %s", name, group.name, group.region)
        terminal.delta(
            f"Created Scaling Policy [{name}] for AutoScaling Group [{group.name}] in [{group.region}]!"
        )
        return response["PolicyARN"]
