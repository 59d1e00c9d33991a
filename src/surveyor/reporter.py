# surveyor/reporter.py
import csv
import datetime
import io
from typing import Dict, Iterable, List, Optional, Sequence

import click

from .config import Config
from .models import (
    MODEL_NAME_COLUMN,
    MODEL_PATH_COLUMN,
    OBJECT_NAME_COLUMN,
    AttributeRecord,
    ReportTable,
    Scalar,
    SkippedUnit,
    TargetFile,
)
from .utils import format_bytes

CSV_EXTENSION = "csv"


def build_row(record: AttributeRecord) -> Dict[str, Scalar]:
    """Creates the report row of one record: the fixed fields plus its attributes."""
    row: Dict[str, Scalar] = {
        OBJECT_NAME_COLUMN: record.object_name,
        MODEL_NAME_COLUMN: record.source_file.name,
        MODEL_PATH_COLUMN: record.source_file.path_string,
    }
    # Attributes are added last, so an attribute named like a fixed column overrides it.
    row.update(record.attributes)
    return row


def compute_columns(rows: Iterable[Dict[str, Scalar]], base_columns: Sequence[str]) -> List[str]:
    """
    Returns base_columns in their given order, followed by every other key seen
    in any row, sorted. The result does not depend on row order.
    """
    columns = list(dict.fromkeys(base_columns))
    known = set(columns)
    discovered = {key for row in rows for key in row if key not in known}
    return columns + sorted(discovered)


def assemble_table(records: Sequence[AttributeRecord], cfg: Config) -> ReportTable:
    """
    Flattens attribute records into a rectangular table.

    Every row gets a value for every column; a record without a given
    attribute gets an empty string there.
    """
    raw_rows = [build_row(record) for record in records]
    columns = compute_columns(raw_rows, cfg.base_column_order)
    rows = [{column: row.get(column, "") for column in columns} for row in raw_rows]
    return ReportTable(columns=columns, rows=rows)


def _cell(value: Optional[Scalar]) -> str:
    if value is None:
        return ""
    return str(value)


def export_table(table: ReportTable, delimiter: str = ",") -> bytes:
    """
    Serializes a table to UTF-8 delimited text with a header row.

    Values containing the delimiter, a quote or a line break are quoted and
    inner quotes are doubled, so parse_table() gives back the same cells.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(table.columns)
    for row in table.rows:
        writer.writerow([_cell(row.get(column)) for column in table.columns])
    return buffer.getvalue().encode("utf-8")


def parse_table(data: bytes, delimiter: str = ",") -> ReportTable:
    """Reads back the output of export_table(). All values come back as strings."""
    reader = csv.reader(io.StringIO(data.decode("utf-8"), newline=""), delimiter=delimiter, quotechar='"')
    lines = list(reader)
    if not lines:
        return ReportTable(columns=(), rows=())
    columns = lines[0]
    rows = [dict(zip(columns, line)) for line in lines[1:]]
    return ReportTable(columns=columns, rows=rows)


def report_filename(base_name: str, extension: str = CSV_EXTENSION, today: Optional[datetime.date] = None) -> str:
    """Returns '<base_name>_<YYYY-MM-DD>.<extension>'."""
    today = today or datetime.date.today()
    return f"{base_name}_{today.isoformat()}.{extension}"


class Reporter:
    """Prints search and report results for the command line."""

    def list_files(self, files: Sequence[TargetFile]):
        """Lists found files with their id, size and path."""
        click.echo(f"Found {len(files)} file{'s' if len(files) != 1 else ''}.")
        for i, target_file in enumerate(files, 1):
            click.echo(click.style(f"{i}. {target_file.name}", bold=True))
            click.echo(f"   ID: {target_file.id} | Size: {format_bytes(target_file.size)}")
            click.echo(f"   Path: {target_file.path_string or 'Root'}")

    def list_skipped(self, skipped: Sequence[SkippedUnit]):
        """Lists the folders and files that could not be read."""
        if not skipped:
            return
        folders = sum(1 for unit in skipped if unit.kind == "folder")
        files = len(skipped) - folders
        click.echo(click.style(f"Skipped {folders} folder(s) and {files} file(s):", fg="yellow"), err=True)
        for unit in skipped:
            click.echo(f"  - {unit.describe()}", err=True)

    def table_summary(self, table: ReportTable):
        """Shows the size of a table and its column order."""
        click.echo(f"Report has {len(table.rows)} rows and {len(table.columns)} columns.")
        click.echo(f"{'#':>4} | Column")
        click.echo("-" * 40)
        for i, column in enumerate(table.columns, 1):
            click.echo(f"{i:>4} | {column}")
