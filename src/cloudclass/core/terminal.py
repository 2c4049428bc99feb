"""Console output helpers.

Progress messages use the same emoji prefixes throughout the tool, and
resource lists are rendered as ASCII tables with tabulate. Columns come
from the ``table`` metadata of each record's dataclass fields.
"""

import dataclasses
from datetime import datetime
from typing import Any, List, Sequence, Tuple

from tabulate import tabulate


TABLE_FORMAT = "psql"


def information(message: str) -> None:
    print(f"ℹ️  {message}")


def delta(message: str) -> None:
    """Report a change made to AWS."""
    print(f"✅ {message}")


def notice(message: str) -> None:
    print(f"📋 {message}")


def show_error_message(title: str, message: str) -> None:
    print(f"❌ {title}: {message}")


def dry_run_notice() -> None:
    information("--dry-run flag is set, not making any actual changes!")


def format_value(value: Any) -> str:
    """Render a record value for a table cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(v) for v in value)
    return str(value)


def table_columns(record_type: type) -> List[Tuple[str, str]]:
    """Labelled fields of a record dataclass as (field name, header)."""
    return [
        (f.name, f.metadata["table"])
        for f in dataclasses.fields(record_type)
        if f.metadata.get("table")
    ]


def render_table(records: Sequence[Any]) -> str:
    """Render records as an ASCII table string."""
    columns = table_columns(type(records[0]))
    headers = [header for _, header in columns]
    rows = [
        [format_value(getattr(record, name)) for name, _ in columns]
        for record in records
    ]
    return tabulate(rows, headers=headers, tablefmt=TABLE_FORMAT)


def print_table(records: Sequence[Any], label: str = "Records") -> None:
    """Print records as an ASCII table.

    Args:
        records: Dataclass records of one type
        label: Plural resource name used when the list is empty
    """
    if not records:
        show_error_message("Warning", f"No {label} Found!")
        return
    print(render_table(records))


def print_rows(headers: Sequence[str], rows: Sequence[Sequence[Any]], label: str = "Records") -> None:
    """Print plain rows as an ASCII table."""
    if not rows:
        show_error_message("Warning", f"No {label} Found!")
        return
    cells = [[format_value(value) for value in row] for row in rows]
    print(tabulate(cells, headers=list(headers), tablefmt=TABLE_FORMAT))


def print_params(params: dict) -> None:
    """Print request parameters in place of a dry-run API call."""
    notice("Params:")
    for key, value in params.items():
        print(f"   {key}: {value}")
