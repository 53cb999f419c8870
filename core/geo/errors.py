from __future__ import annotations


class DegenerateGeometryError(ValueError):
    """
    Raised when a geometric construction is undefined for its input
    (empty point set, fewer than 3 distinct hull points, collinear input).
    """
