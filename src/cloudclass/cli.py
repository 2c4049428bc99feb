#!/usr/bin/env python3
"""cloudclass - Main Entry Point.

Command line interface for provisioning and managing AWS resources from
configuration classes kept in SimpleDB.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from cloudclass import __version__
from cloudclass.classes import CLASS_TYPES, ClassStore, class_type
from cloudclass.classes.definitions import describe_class
from cloudclass.classes.store import to_json
from cloudclass.core import terminal
from cloudclass.core.aws_client import AWSClientManager
from cloudclass.core.config import Configuration, ConfigurationError
from cloudclass.core.errors import CloudClassError, aws_error_message
from cloudclass.core.regions import RegionCatalog
from cloudclass.core.safety import ConfirmationRequest, SafetyManager
from cloudclass.resources import (
    AddressManager,
    AlarmManager,
    AutoScaleGroupManager,
    ImageManager,
    InstanceManager,
    KeyPairManager,
    LaunchConfigurationManager,
    ScalingPolicyManager,
    SecurityGroupManager,
    SnapshotManager,
    SubnetManager,
    VpcManager,
)


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

MANAGERS = {
    "addresses": AddressManager,
    "alarms": AlarmManager,
    "autoscalegroups": AutoScaleGroupManager,
    "launchconfigs": LaunchConfigurationManager,
    "images": ImageManager,
    "instances": InstanceManager,
    "securitygroups": SecurityGroupManager,
    "subnets": SubnetManager,
    "vpcs": VpcManager,
    "snapshots": SnapshotManager,
    "keypairs": KeyPairManager,
    "scalingpolicies": ScalingPolicyManager,
}


def _add_search(parser: argparse.ArgumentParser, required: bool = False) -> None:
    if required:
        parser.add_argument("search", help="Regular expression matched against every field")
    else:
        parser.add_argument(
            "search", nargs="?", default="", help="Regular expression matched against every field"
        )


def _add_mutation_flags(parser: argparse.ArgumentParser, region: bool = False) -> None:
    parser.add_argument(
        "--dry-run", action="store_true", help="Print the requests instead of sending them"
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    if region:
        parser.add_argument("--region", help="Only act in this region")


def _add_list(actions) -> argparse.ArgumentParser:
    parser = actions.add_parser("list", help="List resources across every region")
    _add_search(parser)
    return parser


def _add_delete(actions, verb: str = "delete") -> argparse.ArgumentParser:
    parser = actions.add_parser(verb, help=f"{verb.capitalize()} matching resources")
    _add_search(parser, required=True)
    _add_mutation_flags(parser, region=True)
    return parser


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns:
        Parser with one sub-command per resource type
    """
    parser = argparse.ArgumentParser(
        prog="cloudclass",
        description="Manage AWS infrastructure from configuration classes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s instances list prod              # Instances with "prod" in any field
  %(prog)s launchconfigs create prod        # Next version of the prod class
  %(prog)s autoscalegroups update prod --double --dry-run
  %(prog)s classes install-defaults         # Seed the default classes
        """,
    )

    parser.add_argument("--config", help="Path to configuration file (default: auto-detect)")
    parser.add_argument("--profile", help="AWS profile name to use for credentials")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"cloudclass v{__version__}")

    resources = parser.add_subparsers(dest="resource", metavar="<resource>")
    resources.required = True

    # addresses
    actions = _resource(resources, "addresses", "Elastic IP addresses")
    _add_list(actions).add_argument(
        "--available", action="store_true", help="Only addresses not attached to an instance"
    )
    create = actions.add_parser("create", help="Allocate a new address")
    create.add_argument("region", help="Region to allocate in")
    create.add_argument("--domain", default="vpc", choices=["vpc", "classic"])
    _add_mutation_flags(create)
    _add_delete(actions)

    # alarms
    actions = _resource(resources, "alarms", "CloudWatch alarms")
    _add_list(actions)
    create = actions.add_parser("create", help="Create an alarm from an alarm class")
    create.add_argument("class_name", metavar="class", help="Alarm class")
    create.add_argument("region", help="Region to create the alarm in")
    _add_mutation_flags(create)
    _add_delete(actions)

    # autoscalegroups
    actions = _resource(resources, "autoscalegroups", "AutoScaling groups")
    _add_list(actions)
    create = actions.add_parser("create", help="Create the groups of a class")
    create.add_argument("class_name", metavar="class", help="AutoScaling group class")
    _add_mutation_flags(create)
    update = actions.add_parser("update", help="Update groups to a launch configuration version")
    _add_search(update, required=True)
    update.add_argument("--version", dest="lc_version", type=int, help="Launch configuration version")
    update.add_argument("--double", action="store_true", help="Double desired and max counts")
    _add_mutation_flags(update)
    _add_delete(actions).add_argument(
        "--force-delete", action="store_true", help="Also terminate the instances of each group"
    )
    _add_delete(actions, "suspend")
    _add_delete(actions, "resume")
    activities = actions.add_parser("activities", help="Show scaling activities")
    _add_search(activities)
    activities.add_argument("--latest", action="store_true", help="Only the latest activity per group")
    alarm = actions.add_parser("alarm", help="Attach an alarm class to groups")
    alarm.add_argument("class_name", metavar="class", help="Alarm class")
    _add_search(alarm, required=True)
    _add_mutation_flags(alarm)

    # launchconfigs and images
    for name, description in (
        ("launchconfigs", "Launch configurations"),
        ("images", "Machine images"),
    ):
        actions = _resource(resources, name, description)
        _add_list(actions)
        for verb in ("create", "rotate"):
            sub = actions.add_parser(verb, help=f"{verb.capitalize()} {description.lower()} of a class")
            sub.add_argument("class_name", metavar="class", help="Class name")
            _add_mutation_flags(sub)
        _add_delete(actions)

    # instances
    actions = _resource(resources, "instances", "EC2 instances")
    _add_list(actions)
    _add_delete(actions, "terminate")

    # read-only resources
    for name, description in (
        ("securitygroups", "Security groups"),
        ("subnets", "Subnets"),
        ("vpcs", "VPCs"),
        ("snapshots", "EBS snapshots"),
        ("keypairs", "Key pairs"),
        ("scalingpolicies", "Scaling policies"),
    ):
        _add_list(_resource(resources, name, description))

    # classes
    actions = _resource(resources, "classes", "Configuration classes")
    types = sorted(CLASS_TYPES)
    sub = actions.add_parser("list", help="List the classes of a type")
    sub.add_argument("type_key", metavar="type", choices=types)
    sub = actions.add_parser("show", help="Show one class as JSON")
    sub.add_argument("type_key", metavar="type", choices=types)
    sub.add_argument("name")
    sub = actions.add_parser("save", help="Store a class from a JSON file")
    sub.add_argument("type_key", metavar="type", choices=types)
    sub.add_argument("name")
    sub.add_argument("file", help="JSON document, - for stdin")
    sub = actions.add_parser("delete", help="Delete a class")
    sub.add_argument("type_key", metavar="type", choices=types)
    sub.add_argument("name")
    sub.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    sub = actions.add_parser("install-defaults", help="Seed the default classes")
    sub.add_argument("type_key", metavar="type", nargs="?", choices=types)

    return parser


def _resource(resources, name: str, description: str):
    parser = resources.add_parser(name, help=description)
    actions = parser.add_subparsers(dest="action", metavar="<action>")
    actions.required = True
    return actions


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    return build_parser().parse_args(argv)


def _list(manager, args) -> int:
    if args.resource == "addresses":
        records, _ = manager.list(args.search, args.available)
    else:
        records, _ = manager.list(args.search)
    manager.print_table(records)
    return 0


def _delete(manager, args) -> int:
    manager.delete(args.search, args.region, dry_run=args.dry_run)
    return 0


def _create(manager, args) -> int:
    manager.create(args.class_name, dry_run=args.dry_run)
    return 0


def _rotate(manager, args) -> int:
    manager.rotate(args.class_name, dry_run=args.dry_run)
    return 0


def _address_create(manager, args) -> int:
    manager.create(args.region, args.domain, dry_run=args.dry_run)
    return 0


def _alarm_create(manager, args) -> int:
    manager.create(args.class_name, args.region, dry_run=args.dry_run)
    return 0


def _group_update(manager, args) -> int:
    manager.update(args.search, args.lc_version, args.double, dry_run=args.dry_run)
    return 0


def _group_delete(manager, args) -> int:
    manager.delete(
        args.search, args.region, force_delete=args.force_delete, dry_run=args.dry_run
    )
    return 0


def _group_suspend(manager, args) -> int:
    manager.suspend_processes(args.search, args.region, dry_run=args.dry_run)
    return 0


def _group_resume(manager, args) -> int:
    manager.resume_processes(args.search, args.region, dry_run=args.dry_run)
    return 0


def _group_activities(manager, args) -> int:
    terminal.print_table(manager.scaling_activities(args.search, args.latest), "Scaling Activities")
    return 0


def _group_alarm(manager, args) -> int:
    manager.create_alarms(args.class_name, args.search, dry_run=args.dry_run)
    return 0


def _terminate(manager, args) -> int:
    manager.terminate(args.search, args.region, dry_run=args.dry_run)
    return 0


HANDLERS: Dict[Tuple[str, str], Callable[[Any, argparse.Namespace], int]] = {
    ("addresses", "create"): _address_create,
    ("alarms", "create"): _alarm_create,
    ("autoscalegroups", "update"): _group_update,
    ("autoscalegroups", "delete"): _group_delete,
    ("autoscalegroups", "suspend"): _group_suspend,
    ("autoscalegroups", "resume"): _group_resume,
    ("autoscalegroups", "activities"): _group_activities,
    ("autoscalegroups", "alarm"): _group_alarm,
    ("instances", "terminate"): _terminate,
}

GENERIC_HANDLERS = {
    "list": _list,
    "create": _create,
    "rotate": _rotate,
    "delete": _delete,
}


def run_classes(store: ClassStore, safety: SafetyManager, args: argparse.Namespace) -> int:
    """Run a ``classes`` action against the class store."""
    if args.action == "list":
        classes = store.load_all(args.type_key)
        rows = []
        headers = ["Name"]
        for name, cls in sorted(classes.items()):
            described = describe_class(cls)
            headers = ["Name"] + list(described)
            rows.append([name] + list(described.values()))
        terminal.print_rows(headers, rows, "Classes")
        return 0

    if args.action == "show":
        print(to_json(store.load(args.type_key, args.name)))
        return 0

    if args.action == "save":
        if args.file == "-":
            document = sys.stdin.read()
        else:
            try:
                document = Path(args.file).read_text(encoding="utf-8")
            except OSError as e:
                raise CloudClassError(f"Unable to read class file [{args.file}]: {e.strerror}") from e
        store.save_json(args.type_key, args.name, document)
        terminal.delta(f"Saved {args.type_key} class [{args.name}]")
        return 0

    if args.action == "delete":
        class_type(args.type_key)
        store.load(args.type_key, args.name)
        request = ConfirmationRequest(
            operation="delete class",
            question=f"Are you sure you want to delete the [{args.name}] {args.type_key} class?",
            resource_count=1,
        )
        if not safety.request_confirmation(request):
            print("Aborting!")
            return 1
        store.delete(args.type_key, args.name)
        terminal.delta(f"Deleted {args.type_key} class [{args.name}]")
        return 0

    count = store.install_defaults(args.type_key)
    terminal.delta(f"Installed {count} default classes")
    return 0


def log_audit_trail(safety: SafetyManager) -> None:
    """Write every confirmation decision of this run to the debug log."""
    for entry in safety.get_audit_log():
        logger.debug(
            "Confirmation %s for %s (%d resources, dry run %s): %s",
            "granted" if entry["confirmed"] else "refused",
            entry["operation"],
            entry["resource_count"],
            entry["dry_run"],
            entry["reason"],
        )


def run(args: argparse.Namespace, config: Configuration, aws_client: AWSClientManager) -> int:
    """Dispatch parsed arguments to the resource manager or class store.

    Returns:
        Exit code
    """
    safety = SafetyManager(enable_confirmations=not getattr(args, "yes", False))
    store = ClassStore(aws_client, config)

    try:
        if args.resource == "classes":
            return run_classes(store, safety, args)

        regions = RegionCatalog(aws_client, config)
        manager = MANAGERS[args.resource](aws_client, config, regions, safety, store)

        handler = HANDLERS.get((args.resource, args.action)) or GENERIC_HANDLERS[args.action]
        logger.debug("Running %s %s", args.resource, args.action)
        return handler(manager, args)
    finally:
        log_audit_trail(safety)


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        args = parse_arguments(argv)

        try:
            config = Configuration(args.config)
        except ConfigurationError as e:
            print(f"❌ Configuration error: {e}")
            return 1

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else config.get_log_level(),
            format=LOG_FORMAT,
        )
        if config.path:
            logger.debug("Using configuration file: %s", config.path)
        logger.debug("Effective configuration: %s", config.to_dict())

        try:
            aws_client = AWSClientManager(
                profile_name=args.profile or config.get_profile_name(),
                default_region=config.get_home_region(),
            )
        except (NoCredentialsError, ProfileNotFound) as e:
            print(f"❌ AWS client initialization failed: {e}")
            return 1

        return run(args, config, aws_client)

    except KeyboardInterrupt:
        print("\n\n👋 Operation cancelled by user.")
        return 130

    except CloudClassError as e:
        terminal.show_error_message("Error", str(e))
        return 1

    except ClientError as e:
        terminal.show_error_message("AWS Error", aws_error_message(e))
        return 1

    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        terminal.show_error_message("Unexpected error", str(e))
        print("   Please check your configuration and try again.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
