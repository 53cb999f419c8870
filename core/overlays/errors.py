from __future__ import annotations

from typing import TYPE_CHECKING, Any, Hashable

from geo.errors import DegenerateGeometryError

if TYPE_CHECKING:
    from overlays.diff import Mutation
    from reconcile.result import ReconcileResult


class OverlayError(Exception):
    """
    Base class for errors raised while reconciling overlays.
    """


class ConstructionError(OverlayError):
    """
    The engine rejected the creation of one overlay. Siblings are still processed.
    """

    def __init__(self, identity: Hashable, descriptor: Any, cause: BaseException):
        super().__init__(f"cannot create {type(descriptor).__name__} at {identity!r}: {cause}")
        self.identity = identity
        self.descriptor = descriptor
        self.cause = cause


class MutationError(OverlayError):
    """
    The engine rejected a single-attribute update. Attributes applied before the
    failing one stay applied; the rest are retried on the next pass.
    """

    def __init__(self, identity: Hashable, mutation: "Mutation", cause: BaseException):
        super().__init__(f"cannot set {mutation.attribute!r} at {identity!r}: {cause}")
        self.identity = identity
        self.mutation = mutation
        self.cause = cause


class ReconcileError(OverlayError):
    """
    Raised at the end of a pass in which one or more nodes failed.
    `result` describes everything that was applied.
    """

    def __init__(self, errors: list[OverlayError], result: "ReconcileResult"):
        summary = "; ".join(str(e) for e in errors[:3])
        more = f" (+{len(errors) - 3} more)" if len(errors) > 3 else ""
        super().__init__(f"{len(errors)} overlay(s) failed: {summary}{more}")
        self.errors = errors
        self.result = result


class BindingContextError(OverlayError):
    """
    An overlay or binding was declared where no engine is bound.
    """


class BindingError(OverlayError):
    """
    A CameraState is already bound to another engine.
    """


class DuplicateKeyError(OverlayError, ValueError):
    pass


class DuplicateIdentityError(OverlayError):
    """
    Two live nodes claim the same engine object; event routing would be ambiguous.
    """


class ConcurrentReconcileError(OverlayError, RuntimeError):
    pass


__all__ = [
    "BindingContextError",
    "BindingError",
    "ConcurrentReconcileError",
    "ConstructionError",
    "DegenerateGeometryError",
    "DuplicateIdentityError",
    "DuplicateKeyError",
    "MutationError",
    "OverlayError",
    "ReconcileError",
]
