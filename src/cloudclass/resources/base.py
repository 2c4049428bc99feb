"""Base class for per-region AWS resource managers.

Every resource type lists the same way: describe one region, marshal
the response into records, filter by search term, and fan the whole
thing out across regions. Mutations select records, print them, ask
for confirmation, then act on each record in turn.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from botocore.exceptions import ClientError

from cloudclass.core.aws_client import AWSClientManager
from cloudclass.core.config import Configuration
from cloudclass.core.errors import (
    AbortedError,
    AwsApiError,
    ResourceNotFoundError,
    aws_error_message,
)
from cloudclass.core.fanout import compile_search, fan_out, filter_records
from cloudclass.core.regions import RegionCatalog
from cloudclass.core.safety import ConfirmationRequest, SafetyManager
from cloudclass.core import terminal


ManagerT = TypeVar("ManagerT", bound="RegionalResourceManager")


class RegionalResourceManager(ABC):
    """Base class for all resource managers."""

    #: Plural name used in tables and messages
    label = "Records"

    def __init__(
        self,
        aws_client: AWSClientManager,
        config: Configuration,
        regions: Optional[RegionCatalog] = None,
        safety: Optional[SafetyManager] = None,
        store: Any = None,
    ) -> None:
        """Initialize resource manager.

        Args:
            aws_client: Configured AWS client manager
            config: Loaded configuration
            regions: Region catalogue, built from aws_client when omitted
            safety: Confirmation manager, prompting by default
            store: Class store used by class-driven operations
        """
        self.aws_client = aws_client
        self.config = config
        self.regions = regions or RegionCatalog(aws_client, config)
        self.safety = safety or SafetyManager()
        self.store = store
        self._peers: Dict[type, "RegionalResourceManager"] = {}

    def peer(self, manager_type: Type[ManagerT]) -> ManagerT:
        """Manager of another resource type sharing this one's collaborators."""
        if manager_type not in self._peers:
            self._peers[manager_type] = manager_type(
                self.aws_client, self.config, self.regions, self.safety, self.store
            )
        return self._peers[manager_type]

    def client(self, service: str, region: str):
        return self.aws_client.get_client(service, region)

    @abstractmethod
    def describe_region(self, region: str) -> List[Any]:
        """Describe every resource of this type in one region.

        Returns:
            Records for the region
        """
        pass

    def list_region(self, region: str, search: str = "") -> List[Any]:
        """Records in one region that match search."""
        return filter_records(self.describe_region(region), search)

    def list(self, search: str = "") -> Tuple[List[Any], List[Exception]]:
        """Records in every region that match search.

        Returns:
            Tuple of (records, errors); a failing region adds an error
            and the other regions' records are still returned
        """
        if search:
            compile_search(search)

        result = fan_out(
            self.regions.list_regions(),
            lambda region: self.list_region(region, search),
            self.config.get_max_workers(),
        )

        for region, error in result.errors.items():
            terminal.show_error_message(
                f"Error gathering {self.label} list for region [{region}]",
                aws_error_message(error),
            )

        return result.items, result.error_list()

    def select(self, search: str = "", region: Optional[str] = None) -> List[Any]:
        """Records matching search, in one region or in all of them.

        Raises:
            AwsApiError: When the single region cannot be described
        """
        if region:
            self.regions.require_region(region)
            try:
                return self.list_region(region, search)
            except ClientError as e:
                raise AwsApiError(
                    f"Error gathering {self.label} list: {aws_error_message(e)}"
                )

        records, _ = self.list(search)
        return records

    def announce_dry_run(self, dry_run: bool) -> None:
        if dry_run:
            terminal.dry_run_notice()

    def print_table(self, records: List[Any]) -> None:
        terminal.print_table(records, self.label)

    def confirm_or_abort(
        self, question: str, count: int = 0, dry_run: bool = False, force: bool = False
    ) -> None:
        """Ask for confirmation.

        Raises:
            AbortedError: When the user declines
        """
        request = ConfirmationRequest(
            operation=question, question=question, resource_count=count, dry_run=dry_run
        )
        if not self.safety.request_confirmation(request, force=force):
            raise AbortedError()

    def select_for_change(
        self,
        search: str,
        region: Optional[str],
        question: str,
        dry_run: bool = False,
        force: bool = False,
    ) -> List[Any]:
        """Select, print and confirm the records a mutation will touch.

        Raises:
            ResourceNotFoundError: When nothing matches
            AbortedError: When the user declines
        """
        self.announce_dry_run(dry_run)

        records = self.select(search, region)
        if not records:
            raise ResourceNotFoundError(f"No {self.label} found, Aborting!")

        self.print_table(records)
        self.confirm_or_abort(question, len(records), dry_run, force)
        return records

    def call(self, operation: Callable, **params) -> Dict[str, Any]:
        """Invoke a mutating SDK operation.

        Raises:
            AwsApiError: Carrying the provider message on failure
        """
        try:
            return operation(**params)
        except ClientError as e:
            raise AwsApiError(aws_error_message(e))

    def call_ec2(self, operation: Callable, dry_run: bool, **params) -> Optional[Dict[str, Any]]:
        """Invoke an EC2 operation that supports DryRun.

        Returns:
            The response, or None when the dry run would have succeeded

        Raises:
            AwsApiError: Carrying the provider message on failure
        """
        try:
            return operation(DryRun=dry_run, **params)
        except ClientError as e:
            if dry_run and e.response.get("Error", {}).get("Code") == "DryRunOperation":
                return None
            raise AwsApiError(aws_error_message(e))

    @staticmethod
    def paginate(client, operation: str, key: str, **params) -> List[Dict[str, Any]]:
        """Collect one result key across every page of an SDK operation."""
        items: List[Dict[str, Any]] = []
        for page in client.get_paginator(operation).paginate(**params):
            items.extend(page.get(key, []))
        return items


def plan_rotation(
    records: List[Any],
    retain: int,
    locked: Optional[set] = None,
    identity: Callable[[Any], str] = lambda record: record.name,
) -> List[Any]:
    """Records a rotation would delete.

    Locked records are never candidates. The rest are ordered newest
    first by creation time and everything after the first ``retain``
    is returned.

    Args:
        records: Records of one class in one region
        retain: Number of unlocked records to keep
        locked: Identities that are in use
        identity: Key compared against locked

    Returns:
        Records to delete, newest first
    """
    locked = locked or set()
    candidates = [r for r in records if identity(r) not in locked]
    candidates.sort(
        key=lambda r: r.creation_time or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )
    return candidates[max(retain, 0):]
