"""Command line interface for lktlog with subcommands."""

import argparse
import logging
import sys
import textwrap
from pathlib import Path

from lktlog import __version__, config, setup_logging
from lktlog.checks import LktlogError
from lktlog.convert import check_logbook, convert_logbook, format_problem
from lktlog.serialize import RDF_FORMATS
from lktlog.utils import ConversionError

logger = logging.getLogger(__name__)


def process_common_options(args, raw_args):
    # set up logging
    loglevel = logging.INFO + (args.quieter - args.verboser) * 10
    logfile = args.logfile
    if logfile is None:
        setup_logging(loglevel)
    else:
        logfile.parents[0].mkdir(exist_ok=True, parents=True)
        setup_logging(loglevel, logfile)

    logger.info("Executing cmd: lktlog %s", " ".join(raw_args))
    logger.debug("Processing common options.")

    # load config
    if args.config is not None:
        if args.config.exists():
            config.load_config(config_file=Path(args.config))
        else:
            msg = "Config file not found at: %s"
            logger.error(msg, args.config)
            raise LktlogError(msg % args.config)

    if not args.INFILE.exists():
        msg = "File not found: %s"
        logger.error(msg, args.INFILE)
        raise LktlogError(msg % args.INFILE)
    if not args.INFILE.is_file():
        msg = "Input must be a file: %s"
        logger.error(msg, args.INFILE)
        raise LktlogError(msg % args.INFILE)


class DecentFormatter(argparse.HelpFormatter):
    """
    An argparse formatter that preserves newlines & keeps indentation.
    """

    def _fill_text(self, text, width, indent):
        """
        Reformat text while keeping newlines for lines shorter than width.
        """
        lines = []
        for line in textwrap.indent(textwrap.dedent(text), indent).splitlines():
            lines.append(textwrap.fill(line, width, subsequent_indent=indent))
        return "\n".join(lines)

    def _split_lines(self, text, width):
        """
        Conserve indentation in help/description lines when splitting long lines.
        """
        lines = []
        for line in textwrap.dedent(text).splitlines():
            if not line.strip():  # pragma: no cover
                continue
            indent = " " * (len(line) - len(line.lstrip()))
            lines.extend(
                textwrap.fill(line, width, subsequent_indent=indent).splitlines()
            )
        return lines


def root_cmd(args):
    if args.version:  # pragma: no cover
        print(f"lktlog {__version__}")


def convert_cmd(args):
    logger.debug("Convert subcommand started!")
    output_file = convert_logbook(
        args.INFILE,
        output_file=args.outfile,
        output_format=args.outputformat,
        on_invalid=args.on_invalid,
        backup=args.backup,
    )
    logger.info("-> successfully converted to %s", output_file)


def check_cmd(args):
    logger.debug("Check subcommand started!")
    problems = check_logbook(args.INFILE)
    for problem in problems:
        print(format_problem(problem, colored=True))
    if problems:
        msg = f"The logbook {args.INFILE} has {len(problems)} problem(s)."
        raise ConversionError(msg)


def create_root_parser():
    parser = argparse.ArgumentParser(
        prog="lktlog",
        description=(
            "A command-line tool to convert laboratory logbooks (xlsx) with "
            "one sheet per animal to linked data (RDF)."
        ),
        allow_abbrev=False,
        formatter_class=DecentFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        help="The version of lktlog command line interface.",
        action="store_true",
    )
    parser.set_defaults(func=root_cmd)
    return parser


def create_common_options_parser():
    parser = argparse.ArgumentParser(
        prog="lktlog",
        allow_abbrev=False,
        add_help=False,
        formatter_class=DecentFormatter,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        dest="verboser",
        default=0,
        help="More verbose output. Repeat to increase verbosity (-vv or -vvv).",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        dest="quieter",
        help="Less verbose output. Repeat to reduce verbosity (-qq or -qqq).",
    )
    parser.add_argument(
        "--config",
        help='Path to config file (typically "lktlog.toml").',
        type=Path,
        required=False,
    )
    parser.add_argument(
        "-l",
        "--logfile",
        help=(
            "Activate logging to a file at given path. "
            "The path will be created if it is not existing."
        ),
        type=Path,
    )
    return parser


def add_convert_subparser(subparsers, options):
    """Conversion of a logbook to RDF."""
    parser = subparsers.add_parser(
        "convert",
        description=(
            "Convert a logbook from xlsx to RDF. A backup copy of the input "
            "file is created next to it before the conversion starts."
        ),
        help="Convert a logbook from xlsx to RDF.",
        **options,
    )
    parser.add_argument(
        "-f",
        "--outputformat",
        help=(
            "Format of the RDF file that will be written. "
            f"Supported formats: {', '.join(RDF_FORMATS)} (default: TTL)"
        ),
        type=str.upper,
        choices=list(RDF_FORMATS),
        default=None,
    )
    parser.add_argument(
        "-o",
        "--outfile",
        help=(
            "Path and name of the output file. Files with the same name will "
            'be overwritten. (default: "yyyyMMddHHmm_out.<ext>")'
        ),
        type=Path,
        metavar="FILE",
    )
    parser.add_argument(
        "--on-invalid",
        help=(
            "Skip invalid sheets/entries or abort the conversion if any "
            "is found. (default: skip or the value from config)"
        ),
        choices=["skip", "abort"],
        default=None,
    )
    parser.add_argument(
        "--no-backup",
        help="Do not create a backup copy of the input file.",
        dest="backup",
        default=True,
        action="store_false",
    )
    parser.add_argument(
        "INFILE",
        type=Path,
        help="The logbook file (xlsx) to convert.",
    )
    parser.set_defaults(func=convert_cmd)


def add_check_subparser(subparsers, options):
    """Validation of a logbook without conversion."""
    parser = subparsers.add_parser(
        "check",
        description=(
            "Check all sheets and entries of a logbook for missing or "
            "malformed values."
        ),
        help="Check a logbook for missing or malformed values.",
        **options,
    )
    parser.add_argument(
        "INFILE",
        type=Path,
        help="The logbook file (xlsx) to check.",
    )
    parser.set_defaults(func=check_cmd)


def main_cli(raw_args=None):
    """Setup CLI app and run commands based on args."""
    # Create root parser for cli app
    parser = create_root_parser()

    subparsers = parser.add_subparsers(
        title="Subcommands",
        dest="subcommand",
        description="Get help for commands with lktlog COMMAND --help",
    )
    # Create parser to share some options between subparsers. We cannot use the
    # root parser for this because it includes the sub-commands and their help.
    common_options_parser = create_common_options_parser()

    # Create the subparsers with some common options
    common_options = {
        "parents": [common_options_parser],
        "formatter_class": DecentFormatter,
    }
    add_convert_subparser(subparsers, common_options)
    add_check_subparser(subparsers, common_options)

    if not raw_args:
        parser.print_help()
        return

    # Parse the command-line arguments
    #   pars_args will call sys.exit(2) if invalid commands are given.
    args = parser.parse_args(raw_args)
    if hasattr(args, "config"):
        process_common_options(args, raw_args)
    args.func(args)


def run_cli_app(raw_args=None):
    """Entry point for running the cli app."""
    if raw_args is None:
        raw_args = sys.argv[1:]
    try:
        main_cli(raw_args)
    except (LktlogError, ConversionError) as e:
        logger.error("Terminating with error: %s", e)  # noqa: TRY400
        sys.exit(1)
    except Exception:  # pragma: no cover
        logger.exception("Unexpected error.")
        sys.exit(3)  # value 2 is used by argparse for invalid args.


if __name__ == "__main__":
    run_cli_app(sys.argv[1:])
