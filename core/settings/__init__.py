from .loader import load_settings
from .types import MapViewSettings

__all__ = ["MapViewSettings", "load_settings"]
