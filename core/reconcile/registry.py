from __future__ import annotations

from typing import Any, Hashable, Iterator

from overlays.errors import DuplicateIdentityError
from overlays.nodes import OverlayNode


class NodeRegistry:
    """
    Ordered collection of live nodes (tree order) with two indexes:

    - by identity (key or position assigned by the reconciler), for diffing;
    - by engine identity `(kind, engine id)`, for routing engine events.

    Each engine object maps to exactly one node; a second node claiming the same
    engine id is rejected.
    """

    def __init__(self) -> None:
        self._nodes: list[OverlayNode] = []
        self._by_identity: dict[Hashable, OverlayNode] = {}
        self._by_engine_id: dict[tuple[str, int], OverlayNode] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[OverlayNode]:
        return iter(list(self._nodes))

    def __getitem__(self, index: int) -> OverlayNode:
        return self._nodes[index]

    def index_of(self, node: OverlayNode) -> int:
        for i, n in enumerate(self._nodes):
            if n is node:
                return i
        raise ValueError(f"{node!r} is not registered")

    def get(self, identity: Hashable) -> OverlayNode | None:
        return self._by_identity.get(identity)

    def lookup(self, kind: str, engine_object: Any) -> OverlayNode | None:
        """
        Node owning `engine_object` (anything with an `id`), or None.
        """
        engine_id = getattr(engine_object, "id", None)
        if engine_id is None:
            return None
        return self._by_engine_id.get((kind, engine_id))

    def insert(self, index: int, node: OverlayNode) -> None:
        if node.identity in self._by_identity:
            raise DuplicateIdentityError(f"identity {node.identity!r} is already registered")
        engine_key = self._engine_key(node)
        if engine_key is not None and engine_key in self._by_engine_id:
            raise DuplicateIdentityError(
                f"engine {engine_key[0]} #{engine_key[1]} is already owned by "
                f"{self._by_engine_id[engine_key]!r}"
            )
        self._nodes.insert(index, node)
        self._by_identity[node.identity] = node
        if engine_key is not None:
            self._by_engine_id[engine_key] = node

    def remove(self, node: OverlayNode) -> None:
        del self._nodes[self.index_of(node)]
        self._by_identity.pop(node.identity, None)
        engine_key = self._engine_key(node)
        if engine_key is not None:
            self._by_engine_id.pop(engine_key, None)

    def move(self, from_index: int, to_index: int) -> None:
        """
        Reposition one node; the node ends up at `to_index`.
        """
        node = self._nodes.pop(from_index)
        self._nodes.insert(to_index, node)

    def clear(self) -> list[OverlayNode]:
        nodes = list(self._nodes)
        self._nodes.clear()
        self._by_identity.clear()
        self._by_engine_id.clear()
        return nodes

    @staticmethod
    def _engine_key(node: OverlayNode) -> tuple[str, int] | None:
        engine_id = node.engine_id
        if engine_id is None:
            return None
        return (node.kind, engine_id)
