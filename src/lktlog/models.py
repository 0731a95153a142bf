"""Pydantic models for the records of a laboratory logbook.

A logbook workbook holds one worksheet per subject animal (a Sheet). Each
row of the entries table of a worksheet is one experiment session (an Entry).
The models are immutable; everything derived from them is computed on read.
"""

import datetime
import logging
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

# All calendar dates of a sheet have to be written in this pattern.
SUPPORTED_DATE_PATTERN = "dd.MM.yyyy"
SUPPORTED_DATE_FORMAT = "%d.%m.%Y"
DATE_PATTERN = re.compile(r"^[0-9]{2}\.[0-9]{2}\.[0-9]{4}$")

VALID_SEX_VALUES = ("m", "f")


def parse_date(value: str | None) -> datetime.date | None:
    """Parse a date in the format dd.MM.yyyy. Returns None if not possible."""
    if not value or not DATE_PATTERN.match(value.strip()):
        return None
    try:
        return datetime.datetime.strptime(value.strip(), SUPPORTED_DATE_FORMAT).date()
    except ValueError:
        return None


class TriState(str, Enum):
    """Yes/no flag of a logbook entry that may also be left unspecified."""

    TRUE = "y"
    FALSE = "n"
    UNSPECIFIED = ""

    @classmethod
    def parse(cls, value) -> "TriState":
        """Map "y"/"n" (any case) or a bool to TRUE/FALSE, anything else to UNSPECIFIED."""
        if isinstance(value, TriState):
            return value
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == cls.TRUE.value:
                return cls.TRUE
            if normalized == cls.FALSE.value:
                return cls.FALSE
        return cls.UNSPECIFIED

    def as_bool(self, default: bool | None = None) -> bool | None:
        if self is TriState.TRUE:
            return True
        if self is TriState.FALSE:
            return False
        return default


def _strip_text(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


class Entry(BaseModel):
    """One experiment session, i.e. one row of the entries table."""

    model_config = ConfigDict(frozen=True)

    project: str = ""
    experiment: str = ""
    paradigm: str = ""
    paradigm_specifics: str = ""
    experiment_date: datetime.datetime | None = None
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    comment_experiment: str = ""
    comment_subject: str = ""
    feed: str = ""
    is_on_diet: TriState = TriState.UNSPECIFIED
    is_initial_weight: TriState = TriState.UNSPECIFIED
    # unit: gram
    weight: float | None = None
    # Row in the source worksheet, only used to locate problems.
    row: int | None = Field(None, exclude=True)

    @field_validator(
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
        mode="before",
    )
    @classmethod
    def strip_text(cls, v):
        return _strip_text(v)

    @field_validator("is_on_diet", "is_initial_weight", mode="before")
    @classmethod
    def parse_tristate(cls, v):
        return TriState.parse(v)

    @field_validator("weight", mode="before")
    @classmethod
    def empty_weight(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_empty_line(self) -> bool:
        """True as long as none of project, experiment, date or surname is set.

        Worksheets often contain formatted but otherwise empty rows which
        are parsed like any other row.
        """
        return not (
            self.project
            or self.experiment
            or self.experiment_date is not None
            or self.last_name
        )

    @property
    def is_valid(self) -> bool:
        return bool(
            self.project
            and self.experiment
            and self.experiment_date is not None
            and self.last_name
        )

    @property
    def experimenter_name(self) -> str:
        return " ".join(
            name for name in (self.first_name, self.middle_name, self.last_name) if name
        )


class Sheet(BaseModel):
    """All data of one subject animal, i.e. one worksheet of the logbook."""

    model_config = ConfigDict(frozen=True)

    subject_id: str = ""
    sex: str = ""
    # Dates are kept as written in the worksheet (dd.MM.yyyy) so that
    # malformed values can be reported instead of failing on construction.
    date_of_birth: str = ""
    date_of_withdrawal: str = ""
    permit_number: str = ""
    species: str = ""
    scientific_name: str = ""
    entries: tuple[Entry, ...] = ()
    # Worksheet title, only used to locate problems.
    name: str = Field("", exclude=True)

    @field_validator(
        "subject_id",
        "sex",
        "date_of_birth",
        "date_of_withdrawal",
        "permit_number",
        "species",
        "scientific_name",
        mode="before",
    )
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, datetime.datetime | datetime.date):
            return v.strftime(SUPPORTED_DATE_FORMAT)
        return _strip_text(v)

    @property
    def birth_date(self) -> datetime.date | None:
        return parse_date(self.date_of_birth)

    @property
    def withdrawal_date(self) -> datetime.date | None:
        return parse_date(self.date_of_withdrawal)

    @property
    def is_valid(self) -> bool:
        return bool(
            self.subject_id
            and self.permit_number
            and self.species
            and self.sex in VALID_SEX_VALUES
            and self.birth_date is not None
            and self.withdrawal_date is not None
        )

    @property
    def non_empty_entries(self) -> list[Entry]:
        return [entry for entry in self.entries if not entry.is_empty_line]

    def with_entries(self, entries) -> "Sheet":
        """Return a copy of the sheet holding the given entries instead."""
        return self.model_copy(update={"entries": tuple(entries)})
