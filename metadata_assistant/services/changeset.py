"""Ordered collection of pending, path-addressed edits."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..models.core import MISSING, NOT_FOUND, DocumentPath, PendingChange, describe_value
from ..models.errors import MalformedPathException
from .path_resolver import PathLike, PathResolver

logger = logging.getLogger(__name__)


class ChangeSet:
    """Pending edits keyed by path, in insertion (display) order.

    At most one entry exists per path. A repeated proposal for the same path
    replaces ``new_value`` and keeps the ``old_value`` captured the first time,
    so reverting always returns the field to its pre-session value.

    The ChangeSet does not validate anything itself. Callers gate proposals
    with SchemaValidator before calling ``propose``.
    """

    def __init__(self, resolver: Optional[PathResolver] = None, changes: Optional[List[PendingChange]] = None):
        self.resolver = resolver or PathResolver()
        self._changes: List[PendingChange] = list(changes or [])

    def propose(self, path: PathLike, new_value: Any, base_document: Any) -> PendingChange:
        """Stage a new value (or a deletion, with MISSING) for a path.

        Deleting a field that only exists because of a pending creation
        withdraws that creation instead of staging a deletion.

        Args:
            path: Target path
            new_value: Proposed JSON value, MISSING to delete the field
            base_document: Base document the pending changes apply to

        Returns:
            The created, updated or withdrawn PendingChange

        Raises:
            MalformedPathException: If the path cannot be parsed
            PathTypeConflictException: If folding existing entries fails
        """
        parsed = self.resolver.parse(path)
        index = self._index_of(parsed)

        if index is not None:
            existing = self._changes[index]
            updated = existing.model_copy(update={"new_value": new_value})
            if new_value is MISSING and existing.old_value is MISSING:
                self._drop_subtree(parsed)
                logger.debug(f"Withdrew pending creation of '{parsed}'")
                return updated
            self._changes[index] = updated
            logger.debug(f"Updated pending change for '{parsed}'")
            return updated

        old_value = self.resolver.get(self.effective_document(base_document), parsed)
        change = PendingChange(
            path=parsed,
            old_value=MISSING if old_value is NOT_FOUND else old_value,
            new_value=new_value,
        )
        self._changes.append(change)
        logger.debug(f"Added pending change for '{parsed}'")
        return change

    def revert(self, path: PathLike) -> List[PendingChange]:
        """Drop the entry for a path together with the entries beneath it.

        Entries below the path were staged against the value being reverted
        and may not fit the restored one, so they go too.

        Returns:
            The removed entries, the one for ``path`` first; empty if no
            entry exists for ``path``
        """
        parsed = self.resolver.parse(path)
        if self._index_of(parsed) is None:
            return []
        removed = self._drop_subtree(parsed)
        if len(removed) > 1:
            logger.debug(f"Reverted '{parsed}' and {len(removed) - 1} change(s) beneath it")
        else:
            logger.debug(f"Reverted pending change for '{parsed}'")
        return removed

    def clear(self) -> None:
        self._changes.clear()

    def effective_document(self, base_document: Any) -> Any:
        """Fold every entry over the base document, in insertion order.

        Pure and recomputed on every call; the base document is not touched.

        Raises:
            PathTypeConflictException: If an entry no longer fits the shape
                produced by the entries before it
        """
        document = base_document
        for change in self._changes:
            if change.is_deletion:
                document = self.resolver.remove(document, change.path)
            else:
                document = self.resolver.set(document, change.path, change.new_value)
        return document

    def find_by_path(self, path: PathLike) -> Any:
        """Return the PendingChange for a path, or NOT_FOUND."""
        index = self._index_of(self.resolver.parse(path))
        return NOT_FOUND if index is None else self._changes[index]

    def with_provisional(self, path: PathLike, new_value: Any, base_document: Any) -> "ChangeSet":
        """Return a copy with one more proposal folded in, leaving self unchanged.

        Used to build the candidate document that is validated before a
        proposal is admitted.
        """
        provisional = ChangeSet(self.resolver, self._changes)
        provisional.propose(path, new_value, base_document)
        return provisional

    @property
    def changes(self) -> Tuple[PendingChange, ...]:
        return tuple(self._changes)

    def to_wire(self) -> List[Dict[str, Any]]:
        return [change.to_wire() for change in self._changes]

    def summary_lines(self) -> List[str]:
        """Render one ``path: old → new`` line per pending change."""
        lines = []
        for change in self._changes:
            if change.is_deletion:
                lines.append(f"{change.path}: {describe_value(change.old_value)} → (removed)")
            else:
                lines.append(
                    f"{change.path}: {describe_value(change.old_value)} → {describe_value(change.new_value)}"
                )
        return lines

    def _drop_subtree(self, path: DocumentPath) -> List[PendingChange]:
        removed = [change for change in self._changes if path.is_prefix_of(change.path)]
        removed.sort(key=lambda change: len(change.path))
        self._changes = [change for change in self._changes if not path.is_prefix_of(change.path)]
        return removed

    def _index_of(self, path: DocumentPath) -> Optional[int]:
        for index, change in enumerate(self._changes):
            if change.path == path:
                return index
        return None

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[PendingChange]:
        return iter(tuple(self._changes))

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, DocumentPath, list, tuple)):
            return False
        try:
            parsed = self.resolver.parse(path)
        except MalformedPathException:
            return False
        return self._index_of(parsed) is not None

    def __repr__(self) -> str:
        return f"ChangeSet({[str(change.path) for change in self._changes]})"
