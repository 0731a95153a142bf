"""Checks of logbook sheets and entries for completeness and format.

The checks never raise for invalid input. Each violated rule is reported as
one Diagnostic; all rules are evaluated, none short-circuits another.
"""

import logging
from enum import Enum
from typing import NamedTuple

from lktlog.models import (
    SUPPORTED_DATE_PATTERN,
    VALID_SEX_VALUES,
    Entry,
    Sheet,
    parse_date,
)

logger = logging.getLogger(__name__)


class LktlogError(Exception):
    pass


class Violation(str, Enum):
    MISSING = "missing"
    INVALID = "invalid"
    INVALID_FORMAT = "invalid format"


class Diagnostic(NamedTuple):
    """A single violated rule of a sheet or entry."""

    field: str
    kind: Violation
    message: str
    value: str = ""

    def __str__(self):
        return self.message


def _check_required(diagnostics, value, field, message):
    if not value:
        diagnostics.append(Diagnostic(field, Violation.MISSING, message))


def _check_date(diagnostics, value, field, label):
    if not value:
        diagnostics.append(
            Diagnostic(field, Violation.MISSING, f"{label} is missing")
        )
    elif parse_date(value) is None:
        msg = (
            f"Invalid {label} format ({value}). Please check the date and "
            f"use format '{SUPPORTED_DATE_PATTERN}'"
        )
        diagnostics.append(Diagnostic(field, Violation.INVALID_FORMAT, msg, value))


def check_sheet(sheet: Sheet) -> list[Diagnostic]:
    """Check that a sheet contains all required information."""
    diagnostics = []
    _check_required(diagnostics, sheet.subject_id, "subject_id", "Missing animal ID")
    _check_required(
        diagnostics, sheet.permit_number, "permit_number", "Missing permit number"
    )
    _check_required(diagnostics, sheet.species, "species", "Missing species entry")

    if not sheet.sex:
        diagnostics.append(
            Diagnostic("sex", Violation.MISSING, "Missing animal sex entry")
        )
    elif sheet.sex not in VALID_SEX_VALUES:
        diagnostics.append(
            Diagnostic(
                "sex",
                Violation.INVALID,
                f"Invalid animal sex ({sheet.sex})",
                sheet.sex,
            )
        )

    _check_date(diagnostics, sheet.date_of_birth, "date_of_birth", "Date of birth")
    _check_date(
        diagnostics,
        sheet.date_of_withdrawal,
        "date_of_withdrawal",
        "Date of withdrawal",
    )
    return diagnostics


def check_entry(entry: Entry) -> list[Diagnostic]:
    """Check that an entry contains all required information."""
    diagnostics = []
    _check_required(diagnostics, entry.project, "project", "Missing project")
    _check_required(diagnostics, entry.experiment, "experiment", "Missing experiment")
    _check_required(
        diagnostics,
        entry.experiment_date,
        "experiment_date",
        "Missing experiment date",
    )
    _check_required(
        diagnostics, entry.last_name, "last_name", "Missing name of experimenter"
    )
    return diagnostics


def validate_sheet(sheet: Sheet) -> list[str]:
    """Return one message per violated rule of the sheet (empty if valid)."""
    return [str(diagnostic) for diagnostic in check_sheet(sheet)]


def validate_entry(entry: Entry) -> list[str]:
    """Return one message per violated rule of the entry (empty if valid)."""
    return [str(diagnostic) for diagnostic in check_entry(entry)]


def is_valid_sheet(sheet: Sheet) -> bool:
    return not check_sheet(sheet)


def is_valid_entry(entry: Entry) -> bool:
    return not check_entry(entry)
