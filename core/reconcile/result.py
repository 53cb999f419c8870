from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Literal

OperationType = Literal["insert", "update", "move", "remove"]


@dataclass(frozen=True)
class Operation:
    op: OperationType
    identity: Hashable
    kind: str
    # update: changed attribute names; move: (from_index, to_index)
    detail: Any = None


@dataclass
class ReconcileResult:
    operations: list[Operation] = field(default_factory=list)
    duration_ms: float = 0.0

    def add(self, op: OperationType, identity: Hashable, kind: str, detail: Any = None) -> None:
        self.operations.append(Operation(op=op, identity=identity, kind=kind, detail=detail))

    def of(self, op: OperationType) -> list[Operation]:
        return [o for o in self.operations if o.op == op]

    @property
    def inserts(self) -> int:
        return len(self.of("insert"))

    @property
    def updates(self) -> int:
        return len(self.of("update"))

    @property
    def moves(self) -> int:
        return len(self.of("move"))

    @property
    def removes(self) -> int:
        return len(self.of("remove"))

    @property
    def is_noop(self) -> bool:
        return not self.operations

    def stats(self) -> dict[str, Any]:
        return {
            "inserts": self.inserts,
            "updates": self.updates,
            "moves": self.moves,
            "removes": self.removes,
            "timingsMs": {"total": round(self.duration_ms, 3)},
        }
