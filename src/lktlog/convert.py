import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from colorama import Fore, Style

from lktlog import config
from lktlog.checks import Diagnostic, LktlogError, Violation, check_entry, check_sheet
from lktlog.graph import GraphBuilder, local_namespace, type_counts
from lktlog.models import Entry, Sheet
from lktlog.serialize import format_extension, resolve_format, write_statements
from lktlog.utils import (
    ConversionError,
    check_input_file,
    default_output_file,
    make_backup,
)
from lktlog.xlsx_reader import read_logbook

logger = logging.getLogger(__name__)

# (sheet, entry or None for sheet-level problems, diagnostic)
Problem = tuple[Sheet, Entry | None, Diagnostic]


def problem_location(sheet: Sheet, entry: Entry | None = None) -> str:
    location = f'Sheet "{sheet.name or sheet.subject_id}"'
    if entry is not None and entry.row is not None:
        location += f", row {entry.row}"
    return location


def format_problem(problem: Problem, colored: bool = False) -> str:
    sheet, entry, diagnostic = problem
    message = f"{problem_location(sheet, entry)}: {diagnostic}"
    if not colored:
        return message
    color = Fore.YELLOW if diagnostic.kind is Violation.MISSING else Fore.RED
    return color + message + Style.RESET_ALL


def find_problems(sheets: Iterable[Sheet]) -> list[Problem]:
    """Validate all sheets and their non-empty entries."""
    problems = []
    for sheet in sheets:
        problems.extend((sheet, None, diag) for diag in check_sheet(sheet))
        for entry in sheet.non_empty_entries:
            problems.extend((sheet, entry, diag) for diag in check_entry(entry))
    return problems


def select_valid(sheets: Iterable[Sheet], on_invalid: str | None = None) -> list[Sheet]:
    """
    Drop empty lines and handle invalid sheets or entries.

    With on_invalid="skip" invalid sheets and entries are left out and a
    warning is logged for each problem. With on_invalid="abort" all problems
    are logged as errors and a ConversionError is raised.
    """
    on_invalid = config.LOGBOOK.on_invalid if on_invalid is None else on_invalid
    if on_invalid not in ("skip", "abort"):
        msg = f'Unknown option "{on_invalid}" for handling invalid records.'
        raise LktlogError(msg)

    selected = []
    n_problems = 0
    for sheet in sheets:
        problems = find_problems([sheet])
        n_problems += len(problems)
        for problem in problems:
            if on_invalid == "abort":
                logger.error(format_problem(problem))
            else:
                logger.warning(format_problem(problem))

        if any(entry is None for _sheet, entry, _diag in problems):
            logger.debug("-> Skipping %s", problem_location(sheet))
            continue
        invalid = {entry for _sheet, entry, _diag in problems}
        selected.append(
            sheet.with_entries(
                entry for entry in sheet.non_empty_entries if entry not in invalid
            )
        )

    if n_problems and on_invalid == "abort":
        msg = f"Found {n_problems} problem(s) in the logbook. See log for details."
        raise ConversionError(msg)
    return selected


def check_logbook(input_file: Path) -> list[Problem]:
    """Read a logbook and return all problems found by validation."""
    sheets = read_logbook(input_file)
    problems = find_problems(sheets)
    if problems:
        logger.info("Found %d problem(s) in %s", len(problems), input_file)
    else:
        logger.info("-> logbook check passed for file: %s", input_file)
    return problems


def convert_logbook(
    input_file: Path,
    output_file: Path | None = None,
    output_format: str | None = None,
    on_invalid: str | None = None,
    backup: bool = True,
    clock: Callable | None = None,
) -> Path:
    """Convert a logbook workbook to an RDF file and return the file path."""
    logger.debug("Checking output format...")
    selector = resolve_format(output_format or config.LOGBOOK.default_format)
    check_input_file(input_file)
    if output_file is None:
        output_file = default_output_file(format_extension(selector))

    if backup:
        make_backup(input_file)

    sheets = read_logbook(input_file)
    selected = select_valid(sheets, on_invalid)
    if not selected:
        logger.warning("No valid sheet found in %s", input_file)

    local_ns = local_namespace(output_file)
    builder = GraphBuilder(local_ns, clock=clock)
    result = builder.build(selected, str(input_file))

    for rdf_type, count in sorted(type_counts(result.statements).items()):
        logger.debug(
            "-> %s: %d",
            config.curies_converter.compress(str(rdf_type), passthrough=True),
            count,
        )

    write_statements(result.statements, output_file, selector, local_ns)
    logger.info("Conversion complete: %s", output_file)
    return output_file
