from .endpoint import Endpoint
from .snapshot import DailySnapshot

__all__ = [
    "Endpoint",
    "DailySnapshot",
]
