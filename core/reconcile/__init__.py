"""
Reconciliation of descriptor trees against live engine objects.
"""
from .dispatcher import EventDispatcher
from .reconciler import Reconciler, assign_identities
from .registry import NodeRegistry
from .result import Operation, ReconcileResult
from .view import MapView

__all__ = [
    "EventDispatcher",
    "MapView",
    "NodeRegistry",
    "Operation",
    "ReconcileResult",
    "Reconciler",
    "assign_identities",
]
