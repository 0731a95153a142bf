import datetime
import logging

import pytest
from openpyxl import Workbook

from lktlog.config import SheetLayout
from lktlog.models import TriState
from lktlog.utils import ConversionError
from lktlog.xlsx_reader import (
    cell_text,
    parse_timestamp,
    parse_weight,
    read_logbook,
)
from tests.conftest import metadata_rows, table_row, write_logbook

FORMATS = SheetLayout().timestamp_formats


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ""),
        ("  text ", "text"),
        (4711, "4711"),
        (4711.0, "4711"),
        (2.5, "2.5"),
        (datetime.datetime(2019, 1, 1, 0, 0), "01.01.2019"),
        (datetime.date(2019, 12, 31), "31.12.2019"),
    ],
)
def test_cell_text(value, expected):
    assert cell_text(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, None),
        ("", None),
        ("01.03.2020 10:30", datetime.datetime(2020, 3, 1, 10, 30)),
        ("01.03.2020 10:30:15", datetime.datetime(2020, 3, 1, 10, 30, 15)),
        (datetime.datetime(2020, 3, 1, 10, 30), datetime.datetime(2020, 3, 1, 10, 30)),
        (datetime.date(2020, 3, 1), datetime.datetime(2020, 3, 1, 0, 0)),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value, FORMATS) == expected


@pytest.mark.parametrize("value", ["2020-03-01 10:30", "01.03.2020", "soon"])
def test_parse_timestamp_unsupported(value):
    with pytest.raises(ValueError, match="Unsupported date/time"):
        parse_timestamp(value, FORMATS)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, None), ("", None), (21, 21), (21.5, 21.5), ("21,5", 21.5), (" 3.25", 3.25)],
)
def test_parse_weight(value, expected):
    assert parse_weight(value) == expected


def test_parse_weight_not_a_number():
    with pytest.raises(ValueError, match='Weight "heavy" is not a number'):
        parse_weight("heavy")


def test_read_logbook(logbook_xlsx):
    sheets = read_logbook(logbook_xlsx)
    assert [sheet.name for sheet in sheets] == ["A1", "B2"]

    first = sheets[0]
    assert first.subject_id == "A1"
    assert first.sex == "f"
    assert first.date_of_birth == "01.01.2019"
    assert first.permit_number == "P-100"
    assert first.scientific_name == "Mus musculus"
    assert len(first.entries) == 2  # noqa: PLR2004

    entry = first.entries[0]
    assert entry.project == "ProjX"
    assert entry.experiment_date == datetime.datetime(2020, 3, 1, 10, 30)
    assert entry.experimenter_name == "Anna Smith"
    assert entry.is_on_diet is TriState.TRUE
    assert entry.is_initial_weight is TriState.UNSPECIFIED
    assert entry.weight == 21.5  # noqa: PLR2004
    # metadata block (7 rows), empty row, header row
    assert entry.row == 10  # noqa: PLR2004
    assert first.entries[1].paradigm == "NOR"

    second = sheets[1]
    assert second.permit_number == "P-200"
    assert second.entries[0].is_initial_weight is TriState.FALSE


def test_read_cell_types(tmp_path):
    filepath = write_logbook(
        tmp_path / "types.xlsx",
        {
            "S1": (
                metadata_rows(ID=4711, **{"Date of birth": datetime.date(2019, 1, 2)}),
                [table_row(Datetime=datetime.datetime(2020, 5, 6, 7, 8), Weight="21,5")],
            ),
        },
    )
    (sheet,) = read_logbook(filepath)
    assert sheet.subject_id == "4711"
    assert sheet.date_of_birth == "02.01.2019"
    assert sheet.entries[0].experiment_date == datetime.datetime(2020, 5, 6, 7, 8)
    assert sheet.entries[0].weight == 21.5  # noqa: PLR2004


def test_read_stops_after_empty_rows(tmp_path):
    filepath = write_logbook(
        tmp_path / "gaps.xlsx",
        {
            "S1": (
                metadata_rows(),
                [
                    table_row(),
                    None,
                    None,
                    table_row(Experiment="after gap"),
                    None,
                    None,
                    None,
                    table_row(Experiment="ignored"),
                ],
            ),
        },
    )
    (sheet,) = read_logbook(filepath)
    assert [e.experiment for e in sheet.entries] == ["Open field", "after gap"]


def test_read_keeps_partial_rows(tmp_path):
    filepath = write_logbook(
        tmp_path / "partial.xlsx",
        {"S1": (metadata_rows(), [table_row(), [None] * 9 + ["note only"]])},
    )
    (sheet,) = read_logbook(filepath)
    assert len(sheet.entries) == 2  # noqa: PLR2004
    assert sheet.entries[1].comment_subject == "note only"
    assert sheet.entries[1].is_empty_line
    assert len(sheet.non_empty_entries) == 1


def test_read_warns_on_bad_values(tmp_path, caplog):
    filepath = write_logbook(
        tmp_path / "bad.xlsx",
        {
            "S1": (
                metadata_rows(),
                [table_row(Datetime="yesterday", Weight="heavy", Diet="maybe")],
            ),
        },
    )
    with caplog.at_level(logging.WARNING):
        (sheet,) = read_logbook(filepath)
    entry = sheet.entries[0]
    assert entry.experiment_date is None
    assert entry.weight is None
    assert entry.is_on_diet is TriState.UNSPECIFIED
    assert 'Sheet "S1", row 10: Unsupported date/time "yesterday"' in caplog.text
    assert 'Sheet "S1", row 10: Weight "heavy" is not a number' in caplog.text
    assert 'unrecognized value "maybe" for Diet' in caplog.text


def test_read_metadata_labels_case_insensitive(tmp_path):
    metadata = [(f"{label.upper()}:", value) for label, value in metadata_rows()]
    filepath = write_logbook(tmp_path / "labels.xlsx", {"S1": (metadata, [])})
    (sheet,) = read_logbook(filepath)
    assert sheet.subject_id == "A1"
    assert sheet.species == "mouse"
    assert sheet.entries == ()


def test_read_missing_metadata(tmp_path):
    metadata = [row for row in metadata_rows() if row[0] != "Species"]
    filepath = write_logbook(tmp_path / "nospecies.xlsx", {"S1": (metadata, [])})
    (sheet,) = read_logbook(filepath)
    assert sheet.species == ""


def test_read_sheet_without_table(tmp_path, caplog):
    wb = Workbook()
    ws = wb.active
    ws.title = "Notes"
    ws.append(["Just some notes"])
    filepath = tmp_path / "notes.xlsx"
    wb.save(filepath)

    with caplog.at_level(logging.WARNING):
        (sheet,) = read_logbook(filepath)
    assert sheet.name == "Notes"
    assert sheet.entries == ()
    assert 'Sheet "Notes": no entries table found.' in caplog.text


def test_read_missing_columns(tmp_path, caplog):
    wb = Workbook()
    ws = wb.active
    ws.title = "S1"
    for row in metadata_rows():
        ws.append(row)
    ws.append(["Project", "Experiment", "Datetime", "Last name"])
    ws.append(["ProjX", "Open field", "01.03.2020 10:30", "Smith"])
    filepath = tmp_path / "columns.xlsx"
    wb.save(filepath)

    with caplog.at_level(logging.WARNING):
        (sheet,) = read_logbook(filepath)
    assert "column(s) not found: Paradigm, Paradigm specifics" in caplog.text
    assert sheet.entries[0].is_valid
    assert sheet.entries[0].first_name == ""


def test_ignore_sheets(logbook_xlsx, temp_config):
    temp_config.load_config(
        config=temp_config.LogbookConfig(layout=SheetLayout(ignore_sheets=["A1"]))
    )
    sheets = read_logbook(logbook_xlsx)
    assert [sheet.name for sheet in sheets] == ["B2"]


def test_custom_layout(tmp_path):
    layout = SheetLayout(
        metadata_labels={"subject_id": "Tier", "species": "Art"},
        column_headers={
            "project": "Projekt",
            "experiment": "Experiment",
            "experiment_date": "Datum",
            "last_name": "Nachname",
        },
        timestamp_formats=["%Y-%m-%d %H:%M"],
    )
    wb = Workbook()
    ws = wb.active
    ws.append(["Tier", "M7"])
    ws.append(["Art", "rat"])
    ws.append(["Projekt", "Experiment", "Datum", "Nachname"])
    ws.append(["P", "E", "2020-03-01 10:30", "Meier"])
    filepath = tmp_path / "custom.xlsx"
    wb.save(filepath)

    (sheet,) = read_logbook(filepath, layout)
    assert sheet.subject_id == "M7"
    assert sheet.species == "rat"
    assert sheet.entries[0].experiment_date == datetime.datetime(2020, 3, 1, 10, 30)
    assert sheet.entries[0].last_name == "Meier"


@pytest.mark.parametrize("filename", ["logbook.ods", "logbook.csv", "logbook"])
def test_unsupported_file_type(tmp_path, filename):
    with pytest.raises(ConversionError, match="must end with one of the Excel"):
        read_logbook(tmp_path / filename)
