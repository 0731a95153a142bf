"""Build the RDF statements of a logbook conversion run.

The logbook is organised around the subject animal while the graph is
project-centric: projects link to their experiments, experiments link to
the experimenter and subject, and every subject collects its log entries.
Projects, experimenters and subjects are created once per run; permits,
experiments and subject log entries are created for every sheet or entry.
Every resource links to the single provenance resource of the run.
"""

import datetime
import logging
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from rdflib import DCTERMS, FOAF, RDF, RDFS, BNode, Graph, Literal, Namespace, URIRef
from rdflib.term import Node

from lktlog import config
from lktlog.checks import LktlogError
from lktlog.models import Entry, Sheet, TriState
from lktlog.registry import EntityKind, IdentityRegistry, new_identifier

logger = logging.getLogger(__name__)

LKT = Namespace(config.LKT_NS)

WEIGHT_UNIT = "g"

Statement = tuple[Node, Node, Node]

# Marker for arguments that default to the value in the loaded config.
_FROM_CONFIG = object()


def local_namespace(output_file: Path | str) -> Namespace:
    """
    Namespace for the instances of a run, derived from the output file path.

    Classes and properties always use the LKT namespace.
    """
    path = quote(Path(output_file).resolve().as_posix(), safe="/:")
    return Namespace(f"{config.LKT_NS}{path}/".replace("lkt//", "lkt/"))


class StatementSink(Protocol):
    def emit(self, subject: Node, predicate: Node, obj: Node) -> None: ...


class StatementList:
    """Append-only list of statements which keeps the order of emission."""

    def __init__(self):
        self._statements: list[Statement] = []

    def emit(self, subject: Node, predicate: Node, obj: Node) -> None:
        self._statements.append((subject, predicate, obj))

    def __iter__(self):
        return iter(self._statements)

    def __len__(self):
        return len(self._statements)

    def to_graph(self, graph: Graph | None = None) -> Graph:
        graph = Graph() if graph is None else graph
        for statement in self._statements:
            graph.add(statement)
        return graph


class GraphSink:
    """Sink adding all statements directly to an rdflib Graph."""

    def __init__(self, graph: Graph | None = None):
        self.graph = Graph() if graph is None else graph

    def emit(self, subject: Node, predicate: Node, obj: Node) -> None:
        self.graph.add((subject, predicate, obj))

    def __iter__(self):
        return iter(self.graph)

    def __len__(self):
        return len(self.graph)


@dataclass
class BuildResult:
    statements: StatementSink
    provenance: URIRef
    registry: IdentityRegistry = field(repr=False)


def type_counts(statements: Iterable[Statement]) -> Counter:
    """Count the resources per rdf:type."""
    return Counter(obj for _s, pred, obj in statements if pred == RDF.type)


class GraphBuilder:
    """
    Turns validated sheets into statements for one conversion run.

    The builder does not filter anything; dropping empty or invalid entries
    is up to the caller. Optional fields that are empty are left out
    instead of being written as empty literals.
    """

    def __init__(
        self,
        local_ns: Namespace | str,
        registry: IdentityRegistry | None = None,
        sink: StatementSink | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
        id_factory: Callable[[], str] = new_identifier,
        unspecified_flag=_FROM_CONFIG,
        description: str | None = None,
    ):
        self.local_ns = Namespace(str(local_ns))
        self.registry = IdentityRegistry(id_factory) if registry is None else registry
        self.sink = StatementList() if sink is None else sink
        self.clock = datetime.datetime.now if clock is None else clock
        self.id_factory = id_factory
        self.unspecified_flag = (
            config.LOGBOOK.unspecified_flag
            if unspecified_flag is _FROM_CONFIG
            else unspecified_flag
        )
        self.description = (
            config.LOGBOOK.provenance_description if description is None else description
        )
        self._provenance: URIRef | None = None
        self._n_statements = 0

    def build(self, sheets: Iterable[Sheet], input_source: str) -> BuildResult:
        if self._provenance is not None:
            msg = "A GraphBuilder can only be used for a single conversion run."
            raise LktlogError(msg)

        self._provenance = self._add_provenance(input_source)
        n_sheets = 0
        for sheet in sheets:
            self._add_subject(sheet)
            n_sheets += 1

        logger.info(
            "Built graph with %d statements from %d sheet(s)",
            self._n_statements,
            n_sheets,
        )
        return BuildResult(self.sink, self._provenance, self.registry)

    # --- helpers ---

    def _local(self, identifier: str) -> URIRef:
        return self.local_ns[identifier]

    def _emit(self, subject, predicate, obj):
        self.sink.emit(subject, predicate, obj)
        self._n_statements += 1

    def _emit_non_empty(self, subject, predicate, value):
        if value:
            self._emit(subject, predicate, Literal(value))

    def _emit_flag(self, subject, predicate, flag: TriState):
        value = flag.as_bool(default=self.unspecified_flag)
        if value is not None:
            self._emit(subject, predicate, Literal(value))

    def _new_resource(self, rdf_type: URIRef) -> URIRef:
        resource = self._local(self.id_factory())
        self._emit(resource, RDF.type, rdf_type)
        self._emit(resource, LKT.hasProvenance, self._provenance)
        return resource

    def _resolve(self, kind: EntityKind, key: str) -> tuple[URIRef, bool]:
        is_new = (kind, key) not in self.registry
        return self._local(self.registry.resolve(kind, key)), is_new

    # --- resources ---

    def _add_provenance(self, input_source: str) -> URIRef:
        provenance = self._local(self.id_factory())
        created = self.clock().replace(microsecond=0)
        self._emit(provenance, RDF.type, LKT.Provenance)
        self._emit(provenance, DCTERMS.source, Literal(input_source))
        self._emit(provenance, DCTERMS.created, Literal(created))
        self._emit(provenance, DCTERMS.subject, Literal(self.description))
        return provenance

    def _add_subject(self, sheet: Sheet) -> URIRef:
        subject, is_new = self._resolve(EntityKind.SUBJECT, sheet.subject_id)
        if is_new:
            self._emit(subject, RDF.type, LKT.Subject)
            self._emit(subject, LKT.hasProvenance, self._provenance)
            self._emit(subject, LKT.hasSubjectID, Literal(sheet.subject_id))
            self._emit_non_empty(subject, LKT.hasSex, sheet.sex)
            if sheet.birth_date is not None:
                self._emit(subject, LKT.hasBirthDate, Literal(sheet.birth_date))
            if sheet.withdrawal_date is not None:
                self._emit(
                    subject, LKT.hasWithdrawalDate, Literal(sheet.withdrawal_date)
                )
            self._emit_non_empty(subject, LKT.hasSpeciesName, sheet.species)
            self._emit_non_empty(subject, LKT.hasScientificName, sheet.scientific_name)
        else:
            logger.debug('-> Subject "%s" already known: %s', sheet.subject_id, subject)

        # A permit is added for every sheet, even for a known subject.
        permit = self._new_resource(LKT.Permit)
        self._emit_non_empty(permit, LKT.hasNumber, sheet.permit_number)
        self._emit(subject, LKT.hasPermit, permit)

        for entry in sheet.entries:
            self._add_entry(entry, subject)
        return subject

    def _add_entry(self, entry: Entry, subject: URIRef) -> None:
        project, is_new = self._resolve(EntityKind.PROJECT, entry.project)
        if is_new:
            self._emit(project, RDF.type, LKT.Project)
            self._emit(project, LKT.hasProvenance, self._provenance)
            self._emit_non_empty(project, RDFS.label, entry.project)

        # Experimenters are identified by their surname only.
        experimenter, is_new = self._resolve(EntityKind.EXPERIMENTER, entry.last_name)
        if is_new:
            self._emit(experimenter, RDF.type, LKT.Experimenter)
            self._emit(experimenter, LKT.hasProvenance, self._provenance)
            self._emit_non_empty(experimenter, FOAF.name, entry.experimenter_name)
            self._emit(experimenter, RDFS.subClassOf, FOAF.Person)

        experiment = self._add_experiment(entry)
        self._emit(experiment, LKT.hasExperimenter, experimenter)
        self._emit(experiment, LKT.hasSubject, subject)
        self._emit(project, LKT.hasExperiment, experiment)

        log_entry = self._add_subject_log_entry(entry)
        self._emit(log_entry, LKT.hasExperimenter, experimenter)
        self._emit(subject, LKT.hasSubjectLogEntry, log_entry)

    def _add_experiment(self, entry: Entry) -> URIRef:
        experiment = self._new_resource(LKT.Experiment)
        if entry.experiment_date is not None:
            self._emit(experiment, LKT.startedAt, Literal(entry.experiment_date))
        self._emit_non_empty(experiment, RDFS.label, entry.experiment)
        self._emit_non_empty(experiment, LKT.hasParadigm, entry.paradigm)
        self._emit_non_empty(
            experiment, LKT.hasParadigmSpecifics, entry.paradigm_specifics
        )
        self._emit_non_empty(experiment, RDFS.comment, entry.comment_experiment)
        return experiment

    def _add_subject_log_entry(self, entry: Entry) -> URIRef:
        log_entry = self._new_resource(LKT.SubjectLogEntry)
        if entry.experiment_date is not None:
            self._emit(log_entry, LKT.startedAt, Literal(entry.experiment_date))
        self._emit_flag(log_entry, LKT.hasDiet, entry.is_on_diet)
        self._emit_flag(log_entry, LKT.hasInitialWeightDate, entry.is_initial_weight)
        if entry.weight is not None:
            weight = BNode()
            self._emit(log_entry, LKT.hasWeight, weight)
            self._emit(weight, LKT.hasValue, Literal(entry.weight))
            self._emit(weight, LKT.hasUnit, Literal(WEIGHT_UNIT))
        self._emit_non_empty(log_entry, RDFS.comment, entry.comment_subject)
        self._emit_non_empty(log_entry, LKT.hasFeed, entry.feed)
        return log_entry


def build_graph(
    sheets: Iterable[Sheet], input_source: str, output_file: Path | str, **kwargs
) -> BuildResult:
    """Build the statements of a fresh conversion run for the given output file."""
    builder = GraphBuilder(local_namespace(output_file), **kwargs)
    return builder.build(sheets, input_source)
