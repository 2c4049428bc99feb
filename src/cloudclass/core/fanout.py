"""Concurrent per-region fan-out and record filtering.

Every list operation runs the same describe call in each region at once
and merges the results. Workers only return their records; the calling
thread is the single collector of results and errors.
"""

import dataclasses
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence

from .errors import InvalidSearchError, aws_error_message


logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Merged result of a region fan-out."""

    items: List[Any] = field(default_factory=list)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when every region succeeded."""
        return not self.errors

    def error_list(self) -> List[Exception]:
        """Errors in region order."""
        return list(self.errors.values())


def fan_out(
    regions: Sequence[str],
    worker: Callable[[str], List[Any]],
    max_workers: int = 10,
) -> FanOutResult:
    """Run worker once per region and merge the returned lists.

    Args:
        regions: Region names to visit
        worker: Callable returning a list of records for one region
        max_workers: Upper bound on concurrent regions

    Returns:
        FanOutResult with items in region order and errors by region
    """
    result = FanOutResult()
    if not regions:
        return result

    per_region: Dict[str, List[Any]] = {}
    pool_size = max(1, min(max_workers, len(regions)))

    with ThreadPoolExecutor(max_workers=pool_size) as executor:
        futures = {executor.submit(worker, region): region for region in regions}
        for future in as_completed(futures):
            region = futures[future]
            try:
                per_region[region] = future.result() or []
            except Exception as e:
                logger.error(
                    "Region [%s] failed: %s", region, aws_error_message(e)
                )
                result.errors[region] = e

    for region in regions:
        result.items.extend(per_region.get(region, []))

    return result


def compile_search(search: str) -> "re.Pattern":
    """Compile a search term.

    Raises:
        InvalidSearchError: When the term is not a valid pattern
    """
    try:
        return re.compile(search)
    except re.error as e:
        raise InvalidSearchError(f"Invalid search term [{search}]: {e}")


def record_matches(record: Any, term: "re.Pattern") -> bool:
    """Check whether any string field of a dataclass record matches."""
    for f in dataclasses.fields(record):
        value = getattr(record, f.name)
        if isinstance(value, str) and term.search(value):
            return True
    return False


def filter_records(records: Sequence[Any], search: str = "") -> List[Any]:
    """Keep records with at least one string field matching search.

    Args:
        records: Dataclass records
        search: Regular expression, empty to keep everything

    Returns:
        Matching records in their original order
    """
    if not search:
        return list(records)

    term = compile_search(search)
    return [record for record in records if record_matches(record, term)]
