# Common pytest fixtures for all test modules
import datetime
import itertools
from pathlib import Path

import pytest
from openpyxl import Workbook

from lktlog import config
from lktlog.models import Entry, Sheet

# Header row of the entries table in the default layout.
TABLE_HEADER = [
    "Project",
    "Experiment",
    "Paradigm",
    "Paradigm specifics",
    "Datetime",
    "First name",
    "Middle name",
    "Last name",
    "Comment experiment",
    "Comment animal",
    "Feed",
    "Diet",
    "Initial weight",
    "Weight",
]

FIXED_NOW = datetime.datetime(2024, 1, 31, 15, 30, 12, 345678)


def make_entry(**kwargs) -> Entry:
    """A valid entry; keyword arguments replace the default values."""
    data = {
        "project": "ProjX",
        "experiment": "Open field",
        "experiment_date": datetime.datetime(2020, 3, 1, 10, 30),
        "first_name": "Anna",
        "last_name": "Smith",
    }
    data.update(kwargs)
    return Entry(**data)


def make_sheet(entries=(), **kwargs) -> Sheet:
    """A valid sheet; keyword arguments replace the default values."""
    data = {
        "subject_id": "A1",
        "sex": "f",
        "date_of_birth": "01.01.2019",
        "date_of_withdrawal": "01.01.2021",
        "permit_number": "P-100",
        "species": "mouse",
        "scientific_name": "Mus musculus",
        "name": "A1",
    }
    data.update(kwargs)
    return Sheet(entries=tuple(entries), **data)


def metadata_rows(**kwargs) -> list[tuple]:
    """Metadata block of a worksheet; keyword arguments replace values."""
    values = {
        "ID": "A1",
        "Sex": "f",
        "Date of birth": "01.01.2019",
        "Date of withdrawal": "01.01.2021",
        "Permit number": "P-100",
        "Species": "mouse",
        "Scientific name": "Mus musculus",
    }
    values.update(kwargs)
    return list(values.items())


def table_row(**kwargs) -> list:
    """A row of the entries table with values given by header text."""
    values = {
        "Project": "ProjX",
        "Experiment": "Open field",
        "Datetime": "01.03.2020 10:30",
        "First name": "Anna",
        "Last name": "Smith",
    }
    values.update(kwargs)
    return [values.get(header) for header in TABLE_HEADER]


def write_logbook(filepath: Path, worksheets: dict) -> Path:
    """
    Write a logbook workbook.

    worksheets maps the sheet title to a (metadata, rows) tuple. A None in
    rows is written as an empty row.
    """
    wb = Workbook()
    wb.remove(wb.active)
    for title, (metadata, rows) in worksheets.items():
        ws = wb.create_sheet(title)
        for label, value in metadata:
            ws.append([label, value])
        ws.append([])
        ws.append(TABLE_HEADER)
        for row in rows:
            ws.append([] if row is None else row)
    wb.save(filepath)
    wb.close()
    return filepath


@pytest.fixture
def temp_config():
    """
    Provides a temporary config that can be safely changed in test functions.

    After the test the config will be reset to default.
    """
    yield config

    # Reset the globally changed config to default.
    config.load_config()


@pytest.fixture
def sequential_ids():
    """Identifier factory returning id0001, id0002, ..."""
    counter = itertools.count(1)
    return lambda: f"id{next(counter):04d}"


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def logbook_xlsx(tmp_path) -> Path:
    """Logbook with two valid subjects sharing project and experimenter."""
    return write_logbook(
        tmp_path / "logbook.xlsx",
        {
            "A1": (
                metadata_rows(),
                [
                    table_row(Diet="y", Weight=21.5),
                    table_row(
                        Experiment="Novel object",
                        Datetime="02.03.2020 11:00",
                        Paradigm="NOR",
                    ),
                ],
            ),
            "B2": (
                metadata_rows(ID="B2", Sex="m", **{"Permit number": "P-200"}),
                [table_row(Experiment="Rotarod", **{"Initial weight": "n"})],
            ),
        },
    )
