"""Status package: transition detection, offline sweep, derived views."""

from boxwatch.status.aggregator import compute_uptime
from boxwatch.status.engine import StatusEngine
from boxwatch.status.ingest import IngestService
from boxwatch.status.sweeper import OfflineSweeper
from boxwatch.status.transitions import TransitionDetector

__all__ = [
    "IngestService",
    "OfflineSweeper",
    "StatusEngine",
    "TransitionDetector",
    "compute_uptime",
]
