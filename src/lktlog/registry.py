"""Per-run mapping of natural keys (names) to generated identifiers."""

import logging
import uuid
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """Independent namespaces of the registry."""

    SUBJECT = "subject"
    PROJECT = "project"
    EXPERIMENTER = "experimenter"


def new_identifier() -> str:
    return str(uuid.uuid4())


class IdentityRegistry:
    """
    Map (kind, natural key) pairs to opaque identifiers.

    The first lookup of a pair mints a new identifier, all later lookups
    return the same one. The same key used with two different kinds yields
    two different identifiers. There is no way to remove a mapping; create
    a new registry for each conversion run instead.
    """

    def __init__(self, id_factory: Callable[[], str] = new_identifier):
        self._id_factory = id_factory
        self._ids: dict[EntityKind, dict[str, str]] = {kind: {} for kind in EntityKind}

    def resolve(self, kind: EntityKind | str, key: str) -> str:
        ids = self._ids[EntityKind(kind)]
        if key not in ids:
            ids[key] = self._id_factory()
            logger.debug('-> New %s "%s": %s', EntityKind(kind).value, key, ids[key])
        return ids[key]

    def __contains__(self, item) -> bool:
        kind, key = item
        return key in self._ids[EntityKind(kind)]

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._ids.values())

    def keys(self, kind: EntityKind | str) -> list[str]:
        """Natural keys of one kind in the order they were first resolved."""
        return list(self._ids[EntityKind(kind)])
