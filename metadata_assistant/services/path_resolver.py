"""Path parsing and evaluation against JSON metadata documents."""

import re
from typing import Any, List, Sequence, Union

from ..models.core import MISSING, NOT_FOUND, DocumentPath, NodeKind, Segment, kind_of
from ..models.errors import MalformedPathException, PathTypeConflictException

_INDEX_PATTERN = re.compile(r"^[0-9]+$")

PathLike = Union[str, DocumentPath, Sequence[Segment]]


class PathResolver:
    """Stateless resolver for dot-separated document paths.

    Documents are never mutated. ``set`` and ``remove`` return a new root in
    which every container along the path is a shallow copy and every sibling
    is shared with the input document.
    """

    def parse(self, path: PathLike) -> DocumentPath:
        """Parse a dot-separated path such as ``contributor.0.name``.

        Args:
            path: Path text, or an already parsed path / segment sequence

        Returns:
            Parsed DocumentPath

        Raises:
            MalformedPathException: If the text is empty, has an empty segment
                or uses bracket syntax
        """
        if isinstance(path, DocumentPath):
            return path
        if not isinstance(path, str):
            try:
                return DocumentPath(path)
            except (TypeError, ValueError) as e:
                raise MalformedPathException(str(path), str(e))

        if not path.strip():
            raise MalformedPathException(path, "path is empty")

        segments: List[Segment] = []
        for position, raw in enumerate(path.split(".")):
            if raw == "":
                raise MalformedPathException(path, f"empty segment at position {position}")
            if "[" in raw or "]" in raw:
                raise MalformedPathException(
                    path, "bracket syntax is not supported, use dot-separated indices (e.g. 'contributor.0')"
                )
            segments.append(int(raw) if _INDEX_PATTERN.match(raw) else raw)

        return DocumentPath(segments)

    def get(self, document: Any, path: PathLike) -> Any:
        """Look up the value at a path.

        Returns:
            The value, or NOT_FOUND when any segment is absent, out of range or
            descends into a node of the wrong kind
        """
        node = document
        for segment in self.parse(path):
            kind = kind_of(node)
            if isinstance(segment, int):
                if kind is not NodeKind.ARRAY or segment >= len(node):
                    return NOT_FOUND
                node = node[segment]
            else:
                if kind is not NodeKind.OBJECT or segment not in node:
                    return NOT_FOUND
                node = node[segment]
        return node

    def exists(self, document: Any, path: PathLike) -> bool:
        return self.get(document, path) is not NOT_FOUND

    def set(self, document: Any, path: PathLike, value: Any) -> Any:
        """Return a new document with ``value`` stored at ``path``.

        Missing intermediate containers are created as objects, or as arrays
        when the following segment is an index. Arrays are padded with null
        when the index is past the end.

        Raises:
            MalformedPathException: If the path cannot be parsed
            PathTypeConflictException: If an existing node along the path is
                not the container kind the next segment requires
        """
        parsed = self.parse(path)
        kind_of(value)
        return self._set_in(document, parsed, 0, value)

    def remove(self, document: Any, path: PathLike) -> Any:
        """Return a new document without the value at ``path``.

        Object fields are deleted. Array slots are set to null instead of being
        removed so that the indices of later siblings, and therefore the paths
        of other pending changes, stay valid. Removing an absent path returns
        the document unchanged.

        Raises:
            MalformedPathException: If the path cannot be parsed or is the root
            PathTypeConflictException: If an existing node along the path is
                not the container kind the next segment requires
        """
        parsed = self.parse(path)
        if len(parsed) == 0:
            raise MalformedPathException("", "cannot remove the document root")
        return self._remove_in(document, parsed, 0)

    def _set_in(self, node: Any, path: DocumentPath, depth: int, value: Any) -> Any:
        if depth == len(path):
            return value

        segment = path[depth]
        container = self._copy_container(node, path, depth)
        if isinstance(segment, int):
            child = container[segment] if segment < len(container) else MISSING
            new_child = self._set_in(child, path, depth + 1, value)
            if segment >= len(container):
                container.extend([None] * (segment + 1 - len(container)))
            container[segment] = new_child
        else:
            child = container.get(segment, MISSING)
            container[segment] = self._set_in(child, path, depth + 1, value)
        return container

    def _remove_in(self, node: Any, path: DocumentPath, depth: int) -> Any:
        segment = path[depth]
        if node is MISSING:
            return node
        self._check_container(node, path, depth)

        if isinstance(segment, int):
            if segment >= len(node):
                return node
            if depth == len(path) - 1:
                container = list(node)
                container[segment] = None
                return container
            new_child = self._remove_in(node[segment], path, depth + 1)
            if new_child is node[segment]:
                return node
            container = list(node)
            container[segment] = new_child
            return container

        if segment not in node:
            return node
        if depth == len(path) - 1:
            container = dict(node)
            del container[segment]
            return container
        new_child = self._remove_in(node[segment], path, depth + 1)
        if new_child is node[segment]:
            return node
        container = dict(node)
        container[segment] = new_child
        return container

    def _copy_container(self, node: Any, path: DocumentPath, depth: int) -> Union[dict, list]:
        """Shallow-copy the container at ``depth`` or create it when absent."""
        if node is MISSING:
            return [] if isinstance(path[depth], int) else {}
        self._check_container(node, path, depth)
        return list(node) if isinstance(node, list) else dict(node)

    def _check_container(self, node: Any, path: DocumentPath, depth: int) -> None:
        segment = path[depth]
        expected = NodeKind.ARRAY if isinstance(segment, int) else NodeKind.OBJECT
        found = kind_of(node)
        if found is not expected:
            raise PathTypeConflictException(str(path), segment, found.value, expected.value)