"""
Hashring Watcher

Keeps Thanos-style receive hashring files pointed at ready members only.
"""

from .config import WatcherConfig
from .materializer import ConfigurationMaterializer, MaterializeResult
from .probe import ProbeResult, ReadinessProber
from .reconciler import HashringReconciler
from .run import FileOutcome, RunReport, run_reconciliation
from .scheduler import Scheduler, SchedulerState
from .state import HashringDefinition

__all__ = [
    "ConfigurationMaterializer",
    "FileOutcome",
    "HashringDefinition",
    "HashringReconciler",
    "MaterializeResult",
    "ProbeResult",
    "ReadinessProber",
    "RunReport",
    "Scheduler",
    "SchedulerState",
    "WatcherConfig",
    "run_reconciliation",
]
__version__ = "0.1.0"
