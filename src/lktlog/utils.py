import datetime
import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

EXCEL_FILE_ENDINGS = [".xlsx", ".xlsm"]
BACKUP_SUFFIX = "_backup"
DEFAULT_OUTPUT_STEM = "%Y%m%d%H%M_out"


class ConversionError(Exception):
    pass


def check_input_file(input_file: Path) -> None:
    """Raise ConversionError unless the file has an Excel file ending."""
    if input_file.suffix.lower() not in EXCEL_FILE_ENDINGS:
        msg = (
            "Files for conversion must end with one of the Excel file formats: "
            f"'{', '.join(EXCEL_FILE_ENDINGS)}'"
        )
        logger.error(msg)
        raise ConversionError(msg)


def backup_path(input_file: Path) -> Path:
    """Path of the backup copy, e.g. logbook.xlsx -> logbook_backup.xlsx"""
    return input_file.with_name(f"{input_file.stem}{BACKUP_SUFFIX}{input_file.suffix}")


def make_backup(input_file: Path) -> Path:
    """Copy the input file next to itself. An existing backup is replaced."""
    backup = backup_path(input_file)
    shutil.copyfile(input_file, backup)
    logger.debug("-> Created backup file %s", backup)
    return backup


def default_output_file(extension: str, now: datetime.datetime | None = None) -> Path:
    """Output file name derived from the current time, e.g. 202401311530_out.ttl"""
    now = datetime.datetime.now() if now is None else now
    return Path(f"{now.strftime(DEFAULT_OUTPUT_STEM)}.{extension}")
