"""Read logbook workbooks (xlsx) into Sheet and Entry records.

Each worksheet describes one subject animal. It starts with a key-value
block (label in column A, value in column B) followed by the entries table.
The header row of the table is recognised by the project header in
column A; the other columns are located by their header text.
"""

import datetime
import logging
from pathlib import Path

from openpyxl import load_workbook
from pydantic import ValidationError

from lktlog import config
from lktlog.config import SheetLayout
from lktlog.models import SUPPORTED_DATE_FORMAT, Entry, Sheet, TriState
from lktlog.utils import ConversionError, check_input_file

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "project",
    "experiment",
    "paradigm",
    "paradigm_specifics",
    "first_name",
    "middle_name",
    "last_name",
    "comment_experiment",
    "comment_subject",
    "feed",
)


def cell_text(value) -> str:
    """Text of a cell value as a user would read it in the spreadsheet."""
    if value is None:
        return ""
    if isinstance(value, datetime.datetime | datetime.date):
        return value.strftime(SUPPORTED_DATE_FORMAT)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _normalize_label(value) -> str:
    return cell_text(value).rstrip(":").strip().lower()


def parse_timestamp(value, formats) -> datetime.datetime | None:
    if value is None or isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    text = str(value).strip()
    if not text:
        return None
    for fmt in formats:
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    msg = f'Unsupported date/time "{text}"'
    raise ValueError(msg)


def parse_weight(value) -> float | None:
    if value is None or isinstance(value, int | float):
        return value
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        msg = f'Weight "{value}" is not a number'
        raise ValueError(msg) from None


def _map_columns(header_row, layout: SheetLayout, sheet_name: str) -> dict[str, int]:
    header_to_field = {
        header.strip().lower(): field
        for field, header in layout.column_headers.items()
    }
    columns = {}
    for idx, value in enumerate(header_row):
        field = header_to_field.get(_normalize_label(value))
        if field is not None and field not in columns:
            columns[field] = idx
    missing = [
        layout.column_headers[field]
        for field in layout.column_headers
        if field not in columns
    ]
    if missing:
        logger.warning(
            'Sheet "%s": column(s) not found: %s', sheet_name, ", ".join(missing)
        )
    return columns


def read_entry(
    row, columns: dict[str, int], layout: SheetLayout, sheet_name: str, row_no: int
) -> Entry:
    def value_of(field):
        idx = columns.get(field)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    data = {field: cell_text(value_of(field)) for field in TEXT_FIELDS}

    try:
        data["experiment_date"] = parse_timestamp(
            value_of("experiment_date"), layout.timestamp_formats
        )
    except ValueError as exc:
        logger.warning('Sheet "%s", row %i: %s', sheet_name, row_no, exc)
        data["experiment_date"] = None

    try:
        data["weight"] = parse_weight(value_of("weight"))
    except ValueError as exc:
        logger.warning('Sheet "%s", row %i: %s', sheet_name, row_no, exc)
        data["weight"] = None

    for field in ("is_on_diet", "is_initial_weight"):
        raw = value_of(field)
        flag = TriState.parse(raw)
        if flag is TriState.UNSPECIFIED and cell_text(raw):
            logger.warning(
                'Sheet "%s", row %i: unrecognized value "%s" for %s (expected y/n), '
                "treated as unspecified.",
                sheet_name,
                row_no,
                cell_text(raw),
                layout.column_headers.get(field, field),
            )
        data[field] = flag

    return Entry(**data, row=row_no)


def read_sheet(worksheet, layout: SheetLayout | None = None) -> Sheet:
    """Read the metadata block and all entries of one worksheet."""
    layout = config.LOGBOOK.layout if layout is None else layout
    sheet_name = worksheet.title
    label_to_field = {
        label.strip().lower(): field for field, label in layout.metadata_labels.items()
    }
    project_header = layout.column_headers["project"].strip().lower()

    metadata = {}
    entries = []
    rows = worksheet.iter_rows(values_only=True)
    header_row_no = None
    for row_no, row in enumerate(rows, start=1):
        if not row:
            continue
        label = _normalize_label(row[0])
        if label == project_header:
            header_row_no = row_no
            columns = _map_columns(row, layout, sheet_name)
            break
        field = label_to_field.get(label)
        if field is not None and len(row) > 1:
            metadata[field] = row[1]

    if header_row_no is None:
        logger.warning('Sheet "%s": no entries table found.', sheet_name)
    else:
        empty_rows = 0
        # stop reading the table after max_empty_rows empty rows
        for row_no, row in enumerate(rows, start=header_row_no + 1):
            if not any(cell_text(value) for value in row):
                empty_rows += 1
                if empty_rows >= layout.max_empty_rows:
                    break
                continue
            empty_rows = 0
            entries.append(read_entry(row, columns, layout, sheet_name, row_no))

    missing = [
        label for field, label in layout.metadata_labels.items() if field not in metadata
    ]
    if missing:
        logger.debug('Sheet "%s": no value for %s', sheet_name, ", ".join(missing))

    try:
        return Sheet(**metadata, entries=tuple(entries), name=sheet_name)
    except ValidationError as exc:
        msg = f'Sheet "{sheet_name}" could not be read: {exc}'
        raise ConversionError(msg) from exc


def read_logbook(filepath: Path, layout: SheetLayout | None = None) -> list[Sheet]:
    """Read all worksheets of a logbook workbook in workbook order."""
    layout = config.LOGBOOK.layout if layout is None else layout
    check_input_file(filepath)

    logger.info("Reading XLSX file: %s", filepath)
    wb = load_workbook(filepath, read_only=True, data_only=True)
    try:
        sheets = []
        for worksheet in wb.worksheets:
            if worksheet.title in layout.ignore_sheets:
                logger.debug('-> Ignoring sheet "%s"', worksheet.title)
                continue
            sheet = read_sheet(worksheet, layout)
            logger.debug(
                '-> Sheet "%s": subject "%s" with %d entries',
                sheet.name,
                sheet.subject_id,
                len(sheet.entries),
            )
            sheets.append(sheet)
    finally:
        wb.close()
    return sheets
