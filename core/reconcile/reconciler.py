from __future__ import annotations

import threading
import time
from typing import Hashable

from loguru import logger

from engine.types import MapEngine
from overlays.descriptors import Descriptor, Tree, flatten
from overlays.errors import (
    BindingContextError,
    BindingError,
    ConcurrentReconcileError,
    ConstructionError,
    DuplicateKeyError,
    MutationError,
    OverlayError,
    ReconcileError,
)
from overlays.nodes import BindingContext, Marshal, OverlayNode, create_node, run_inline
from reconcile.registry import NodeRegistry
from reconcile.result import ReconcileResult


def assign_identities(descriptors: list[Descriptor]) -> list[tuple[Hashable, Descriptor]]:
    """
    Pair each descriptor with its identity: `("key", key)` when keyed, otherwise
    `("pos", n)` where n counts unkeyed descriptors only, so inserting a keyed overlay
    never shifts the identity of unkeyed ones.
    """
    out: list[tuple[Hashable, Descriptor]] = []
    seen: set[Hashable] = set()
    position = 0
    for d in descriptors:
        if d.key is None:
            identity: Hashable = ("pos", position)
            position += 1
        else:
            identity = ("key", d.key)
            if identity in seen:
                raise DuplicateKeyError(f"duplicate key {d.key!r} in overlay tree")
        seen.add(identity)
        out.append((identity, d))
    return out


class Reconciler:
    """
    Brings the engine from the state held by the registry to a new descriptor tree.

    One pass: flatten and assign identities, remove nodes whose identity disappeared
    or changed kind, then walk the new tree in order inserting, moving and updating.
    Creation failures do not stop the pass; they are collected and raised together
    as ReconcileError once every sibling has been processed.
    """

    def __init__(
        self,
        engine: MapEngine | None,
        registry: NodeRegistry | None = None,
        *,
        marshal: Marshal = run_inline,
    ):
        self.engine = engine
        self.registry = registry if registry is not None else NodeRegistry()
        self.ctx = BindingContext(engine=engine, marshal=marshal)
        self.current_tree: Tree = None
        self._lock = threading.Lock()

    def reconcile(self, tree: Tree) -> ReconcileResult:
        if not self._lock.acquire(blocking=False):
            raise ConcurrentReconcileError("reconcile() re-entered while a pass is running")
        try:
            return self._reconcile(tree)
        finally:
            self._lock.release()

    def _reconcile(self, tree: Tree) -> ReconcileResult:
        t0 = time.perf_counter()
        result = ReconcileResult()
        errors: list[OverlayError] = []

        wanted = assign_identities(flatten(tree))
        wanted_kinds = {identity: d.KIND for identity, d in wanted}

        for node in self.registry:
            if wanted_kinds.get(node.identity) != node.kind:
                self._remove(node, result)

        position = 0
        for identity, descriptor in wanted:
            node = self.registry.get(identity)
            if node is None:
                if self._insert(identity, descriptor, position, result, errors):
                    position += 1
                continue

            current = self.registry.index_of(node)
            if current != position:
                self.registry.move(current, position)
                result.add("move", identity, node.kind, (current, position))
                logger.debug(f"Moved {node.kind} {identity!r} {current} -> {position}")
            position += 1

            try:
                mutations = node.update(descriptor)
            except MutationError as e:
                logger.warning(f"Update of {node.kind} {identity!r} failed: {e}")
                errors.append(e)
                continue
            if mutations:
                changed = tuple(m.attribute for m in mutations)
                result.add("update", identity, node.kind, changed)
                logger.debug(f"Updated {node.kind} {identity!r}: {', '.join(changed)}")

        self.current_tree = tree
        result.duration_ms = (time.perf_counter() - t0) * 1000.0
        if errors:
            raise ReconcileError(errors, result)
        return result

    def _insert(
        self,
        identity: Hashable,
        descriptor: Descriptor,
        position: int,
        result: ReconcileResult,
        errors: list[OverlayError],
    ) -> bool:
        try:
            node = create_node(self.ctx, descriptor)
        except BindingContextError:
            raise
        except Exception as e:
            logger.warning(f"Cannot create {descriptor.KIND} {identity!r}: {e}")
            errors.append(ConstructionError(identity, descriptor, e))
            return False

        node.identity = identity
        self.registry.insert(position, node)
        try:
            node.on_attached()
        except Exception as e:
            self.registry.remove(node)
            node.on_remove()
            if isinstance(e, BindingError):
                raise
            logger.warning(f"Cannot attach {descriptor.KIND} {identity!r}: {e}")
            errors.append(ConstructionError(identity, descriptor, e))
            return False

        result.add("insert", identity, node.kind)
        logger.debug(f"Inserted {node.kind} {identity!r} at {position}")
        return True

    def _remove(self, node: OverlayNode, result: ReconcileResult) -> None:
        try:
            node.on_remove()
        finally:
            self.registry.remove(node)
        result.add("remove", node.identity, node.kind)
        logger.debug(f"Removed {node.kind} {node.identity!r}")

    def clear(self) -> None:
        """
        Tear down every node and clear the engine in bulk. Safe on an empty registry.
        """
        nodes = self.registry.clear()
        self.current_tree = None
        failures: list[Exception] = []
        try:
            for node in nodes:
                # Every node releases its subscriptions even when a sibling fails.
                try:
                    node.on_cleared()
                except Exception as e:
                    logger.warning(f"Teardown of {node.kind} {node.identity!r} failed: {e}")
                    failures.append(e)
        finally:
            if self.engine is not None:
                self.engine.clear()
        logger.debug(f"Cleared {len(nodes)} node(s)")
        if failures:
            raise failures[0]
