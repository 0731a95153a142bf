"""Write statements to a file in one of the supported RDF formats."""

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from rdflib import Graph, Namespace

from lktlog import config
from lktlog.checks import LktlogError

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "TTL"

# format selector -> rdflib serializer plugin
RDF_FORMATS = {
    "TTL": "turtle",
    "RDF/XML": "pretty-xml",
    "NTRIPLES": "nt",
    "JSON-LD": "json-ld",
}

RDF_FORMAT_EXTENSIONS = {
    "TTL": "ttl",
    "RDF/XML": "rdf",
    "NTRIPLES": "nt",
    "JSON-LD": "jsonld",
}


def resolve_format(output_format: str | None = None) -> str:
    """
    Return the normalized format selector or raise LktlogError if unsupported.

    Call this before doing any work so that a bad format fails fast.
    """
    selector = (output_format or DEFAULT_FORMAT).strip().upper()
    if selector not in RDF_FORMATS:
        msg = (
            f"Unsupported output format: '{output_format}'. "
            f"Please use one of the following: {', '.join(RDF_FORMATS)}"
        )
        raise LktlogError(msg)
    return selector


def format_extension(output_format: str | None = None) -> str:
    return RDF_FORMAT_EXTENSIONS[resolve_format(output_format)]


def statements_to_graph(statements: Iterable, local_ns: Namespace | None = None) -> Graph:
    graph = Graph()
    for prefix, uri_prefix in config.curies_converter.prefix_map.items():
        graph.bind(prefix, Namespace(uri_prefix), override=True)
    if local_ns is not None:
        graph.bind("", Namespace(str(local_ns)), override=True)
    for statement in statements:
        graph.add(statement)
    return graph


def _new_file_mode() -> int:
    # mkstemp creates 0600 files; use the mode open() would give instead
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_statements(
    statements: Iterable,
    output_file: Path,
    output_format: str | None = None,
    local_ns: Namespace | None = None,
) -> Path:
    """
    Serialize the statements and write them to output_file.

    An existing file is overwritten. The data is serialized completely
    before the file is touched, so a failure never leaves a partial file.
    """
    selector = resolve_format(output_format)
    graph = statements_to_graph(statements, local_ns)

    kwargs = {"auto_compact": True} if selector == "JSON-LD" else {}
    data = graph.serialize(format=RDF_FORMATS[selector], encoding="utf-8", **kwargs)

    output_file = Path(output_file)
    logger.info(
        "Writing %d triples to RDF file %s using format '%s'",
        len(graph),
        output_file,
        selector,
    )
    fd, tmp_name = tempfile.mkstemp(
        dir=output_file.resolve().parent, prefix=f".{output_file.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(data)
        os.chmod(tmp_name, _new_file_mode())
        os.replace(tmp_name, output_file)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return output_file
