from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from overlays.descriptors import Descriptor

# Never diffed: identity is resolved by the reconciler before nodes are touched.
_IDENTITY_FIELDS = frozenset({"key"})


@dataclass(frozen=True)
class Mutation:
    """
    One changed attribute of a descriptor, to be applied as one engine call
    (or as a reconciler-local change for callbacks).
    """

    attribute: str
    value: Any


def diff(previous: Descriptor, current: Descriptor) -> list[Mutation]:
    """
    Field-by-field comparison of two descriptors of the same kind.

    Values are compared with `==` because descriptors are rebuilt on every pass.
    Plain functions, lambdas and CameraState objects have no value equality, so they
    compare by identity; bound methods are equal when bound to the same object.
    """
    if type(previous) is not type(current):
        raise TypeError(
            f"cannot diff {type(previous).__name__} against {type(current).__name__}"
        )
    out: list[Mutation] = []
    for f in fields(current):
        if f.name in _IDENTITY_FIELDS:
            continue
        new = getattr(current, f.name)
        if getattr(previous, f.name) != new:
            out.append(Mutation(attribute=f.name, value=new))
    return out

