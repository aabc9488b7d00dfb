from .base import Backend
from .snapshot import Snapshot, select_backend, take_snapshot

__all__ = ["Backend", "Snapshot", "select_backend", "take_snapshot"]
