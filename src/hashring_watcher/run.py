"""
Reconciliation Run

One pass over a set of source hashring files. Every file is read, reconciled
and materialized independently; a failing file never affects the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import httpx

from hashring_watcher.config import WatcherConfig
from hashring_watcher.errors import HashringWatcherError
from hashring_watcher.materializer import ConfigurationMaterializer, generated_path
from hashring_watcher.probe import ReadinessProber
from hashring_watcher.reconciler import HashringReconciler
from hashring_watcher.state import load_hashrings


class FileStatus(str, Enum):
    """Outcome of one file's pipeline."""
    WRITTEN = "written"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class FileOutcome:
    """Result of reconciling one source hashring file."""
    source: str
    generated: str
    status: FileStatus
    fingerprint: Optional[str] = None
    hashrings: int = 0
    ready_endpoints: int = 0
    total_endpoints: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source": self.source,
            "generated": self.generated,
            "status": self.status.value,
            "fingerprint": self.fingerprint,
            "hashrings": self.hashrings,
            "ready_endpoints": self.ready_endpoints,
            "total_endpoints": self.total_endpoints,
            "error": self.error,
        }


@dataclass
class RunReport:
    """Outcomes of one reconciliation run."""
    outcomes: list[FileOutcome] = field(default_factory=list)
    timestamp: str = ""
    duration_ms: float = 0.0

    @property
    def written(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == FileStatus.WRITTEN]

    @property
    def unchanged(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == FileStatus.UNCHANGED]

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status == FileStatus.FAILED]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "written": len(self.written),
            "unchanged": len(self.unchanged),
            "failed": len(self.failed),
            "files": [o.to_dict() for o in self.outcomes],
        }


class ReconciliationRun:
    """Runs the read, reconcile, materialize pipeline for many files."""

    def __init__(
        self,
        config: WatcherConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, files: list[str]) -> RunReport:
        """Process all files concurrently and wait for every pipeline."""
        start = time.monotonic()
        timestamp = datetime.now(timezone.utc).isoformat()

        async with ReadinessProber(
            scheme=self.config.endpoint_scheme,
            timeout=self.config.endpoint_timeout,
            port_offset=self.config.endpoint_port_offset,
            transport=self.transport,
            logger=self.logger,
        ) as prober:
            reconciler = HashringReconciler(prober, logger=self.logger)
            materializer = ConfigurationMaterializer(owner=self.config.owner, logger=self.logger)

            results = await asyncio.gather(
                *(self.process_file(f, reconciler, materializer) for f in files),
                return_exceptions=True,
            )

        outcomes = []
        for source, result in zip(files, results):
            if isinstance(result, Exception):
                self.logger.error(
                    "Unexpected error processing hashring file %s", source, exc_info=result
                )
                outcomes.append(FileOutcome(
                    source=source,
                    generated=str(generated_path(source)),
                    status=FileStatus.FAILED,
                    error=str(result) or type(result).__name__,
                ))
            else:
                outcomes.append(result)

        return RunReport(
            outcomes=outcomes,
            timestamp=timestamp,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    async def process_file(
        self,
        source: str,
        reconciler: HashringReconciler,
        materializer: ConfigurationMaterializer,
    ) -> FileOutcome:
        """Reconcile one source file into its generated file."""
        target = generated_path(source)
        # File I/O runs in the default executor so other files keep probing
        loop = asyncio.get_running_loop()

        try:
            hashrings = await loop.run_in_executor(None, load_hashrings, source)
            reconciled = await reconciler.reconcile_all(hashrings)
            result = await loop.run_in_executor(None, materializer.materialize, reconciled, target)
        except HashringWatcherError as e:
            self.logger.error("%s", e)
            return FileOutcome(
                source=source,
                generated=str(target),
                status=FileStatus.FAILED,
                error=str(e),
            )

        return FileOutcome(
            source=source,
            generated=str(target),
            status=FileStatus.WRITTEN if result.written else FileStatus.UNCHANGED,
            fingerprint=result.fingerprint,
            hashrings=len(reconciled),
            ready_endpoints=sum(len(h.endpoints) for h in reconciled),
            total_endpoints=sum(len(h.endpoints) for h in hashrings),
        )


async def run_reconciliation(
    files: list[str],
    config: WatcherConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    logger: Optional[logging.Logger] = None,
) -> RunReport:
    """Run one reconciliation pass over ``files``."""
    return await ReconciliationRun(config, transport=transport, logger=logger).run(files)
