"""
Sustain Miner - History Mining & Network Aggregation

Walks a project's commit history (local clone or GitHub API), partitions it
into time windows, aggregates developer contribution concurrently with a
deterministic merge, and derives technical and social collaboration
networks for open-source sustainability research.
"""

__version__ = "0.3.0"

from .config import MiningConfig, load_config
from .engine import BatchRunner, MiningEngine
from .models import DateRange, GapRecord, ProjectSpec
from .report.models import MiningReport

__all__ = [
    "MiningEngine",  # Single-project entry point
    "BatchRunner",  # Multi-project runs with per-project isolation
    "MiningConfig",
    "load_config",
    "MiningReport",
    "DateRange",
    "GapRecord",
    "ProjectSpec",
]
