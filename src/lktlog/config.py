"""Config module to share a configuration across all modules in lktlog."""

import logging
import sys
from pathlib import Path
from typing import Annotated, Literal

from curies import Converter
from pydantic import AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from rdflib import RDF, RDFS, XSD
from typing_extensions import Self

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

# === Configuration that is not imported from a config file ===

# Namespace of the classes and properties used in the generated graphs.
LKT_NS = "http://g-node.org/orcid/0000-0003-4857-1083/lkt/"
FOAF_NS = "http://xmlns.com/foaf/0.1/"
DC_NS = "http://purl.org/dc/terms/"

PROVENANCE_DESCRIPTION = (
    "This RDF file was created by parsing data from the file indicated "
    "in the source literal"
)

# === Configuration imported from a toml file stored as pydantic model ===


class SheetLayout(BaseModel):
    """Where the reader finds the fields of a logbook worksheet."""

    # Labels in column A of the metadata block; the value is in column B.
    metadata_labels: dict[str, str] = {
        "subject_id": "ID",
        "sex": "Sex",
        "date_of_birth": "Date of birth",
        "date_of_withdrawal": "Date of withdrawal",
        "permit_number": "Permit number",
        "species": "Species",
        "scientific_name": "Scientific name",
    }
    # Header texts of the entries table. The header row is the first row
    # whose column A holds the "project" header.
    column_headers: dict[str, str] = {
        "project": "Project",
        "experiment": "Experiment",
        "paradigm": "Paradigm",
        "paradigm_specifics": "Paradigm specifics",
        "experiment_date": "Datetime",
        "first_name": "First name",
        "middle_name": "Middle name",
        "last_name": "Last name",
        "comment_experiment": "Comment experiment",
        "comment_subject": "Comment animal",
        "feed": "Feed",
        "is_on_diet": "Diet",
        "is_initial_weight": "Initial weight",
        "weight": "Weight",
    }
    timestamp_formats: list[str] = ["%d.%m.%Y %H:%M", "%d.%m.%Y %H:%M:%S"]
    ignore_sheets: list[str] = []
    # Reading an entries table stops after this many consecutive empty rows.
    max_empty_rows: Annotated[int, Field(ge=1)] = 3

    @field_validator("metadata_labels", "column_headers", mode="after")
    @classmethod
    def labels_not_empty(cls, value):
        empty = [key for key, label in value.items() if not label.strip()]
        if empty:
            msg = f"Empty label for: {', '.join(empty)}"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def required_headers_present(self) -> Self:
        for key in ("project", "experiment", "experiment_date", "last_name"):
            if key not in self.column_headers:
                msg = f'Column header for required field "{key}" must be configured.'
                raise ValueError(msg)
        return self


class LogbookConfig(BaseModel):
    # Boolean written for a tri-state flag that is neither "y" nor "n".
    # None (written as "omit" in toml) leaves the statement out.
    unspecified_flag: bool | None = False
    on_invalid: Literal["skip", "abort"] = "skip"
    default_format: str = "TTL"
    provenance_description: str = PROVENANCE_DESCRIPTION
    prefix_map: dict[str, AnyHttpUrl] = {}
    layout: SheetLayout = SheetLayout()
    default_config: bool = False

    @field_validator("unspecified_flag", mode="before")
    @classmethod
    def omit_unspecified_flag(cls, value):
        # None cannot be expressed in toml.
        if isinstance(value, str) and value.strip().lower() == "omit":
            return None
        return value

    @field_validator("default_format", mode="after")
    @classmethod
    def upper_case_format(cls, value):
        return value.strip().upper()

    @field_validator("prefix_map", mode="after")
    @classmethod
    def reserved_prefixes(cls, value):
        reserved = {"rdf", "rdfs", "xsd", "lkt", "foaf", "dc", ""} & set(value)
        if reserved:
            msg = f'Prefix(es) "{", ".join(sorted(reserved))}" are reserved.'
            raise ValueError(msg)
        return value


# This parameter will be updated/set by load_config.
LOGBOOK = LogbookConfig(default_config=True)
LOGBOOK_PATH: Path | None = None


def _build_curies_converter(prefix_map):
    converter = Converter.from_prefix_map(
        {
            "rdf": str(RDF),
            "rdfs": str(RDFS),
            "xsd": str(XSD),
            "lkt": LKT_NS,
            "foaf": FOAF_NS,
            "dc": DC_NS,
        }
    )
    for prefix, uri_prefix in prefix_map.items():
        converter.add_prefix(prefix, str(uri_prefix), merge=True)
    return converter


# Prefixes bound in all output files. Replaced by load_config.
curies_converter: Converter = _build_curies_converter({})


def load_config(config_file: Path | None = None, config: LogbookConfig | None = None):
    new_conf = {}
    new_conf["LOGBOOK_PATH"] = None
    if config_file is not None and not config_file.exists():
        logger.warning('Configuration file "%s" not found.', config_file)
    if (True if config_file is None else not config_file.exists()) and config is None:
        new_conf["LOGBOOK"] = LogbookConfig(default_config=True)
        logger.debug("Initializing default config.")
    elif config_file and config is None:
        with config_file.open(mode="rb") as fp:
            conf = tomllib.load(fp)
        logger.debug("Config loaded from: %s", config_file)
        new_conf["LOGBOOK"] = LogbookConfig(**conf)
        new_conf["LOGBOOK_PATH"] = config_file.resolve()
    else:
        new_conf["LOGBOOK"] = LogbookConfig.model_validate_json(
            config.model_dump_json()
        )
        logger.debug("Refreshing global state of config.")

    new_conf["curies_converter"] = _build_curies_converter(
        new_conf["LOGBOOK"].prefix_map
    )

    for name, value in new_conf.items():
        globals()[name] = value
