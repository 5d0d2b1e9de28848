"""Hashring membership reconciliation against member readiness."""

import asyncio
import logging
from typing import Optional

from hashring_watcher.probe import ProbeResult, ReadinessProber
from hashring_watcher.state import HashringDefinition


class HashringReconciler:
    """Derives the ready member list of each hashring definition."""

    def __init__(self, prober: ReadinessProber, logger: Optional[logging.Logger] = None):
        self.prober = prober
        self.logger = logger or logging.getLogger(__name__)

    async def probe_members(self, endpoints: list[str]) -> list[ProbeResult]:
        """Probe every distinct member concurrently and wait for all of them."""
        members = list(dict.fromkeys(endpoints))
        results = await asyncio.gather(
            *(self.prober.probe(endpoint) for endpoint in members),
            return_exceptions=True,
        )

        final_results = []
        for endpoint, result in zip(members, results):
            if isinstance(result, Exception):
                self.logger.error("Probe of endpoint %s failed: %r", endpoint, result)
                final_results.append(ProbeResult(endpoint=endpoint, ready=False, message=str(result)))
            else:
                final_results.append(result)
        return final_results

    async def reconcile(self, definition: HashringDefinition) -> HashringDefinition:
        """Replace the definition's members with the sorted ready subset."""
        results = await self.probe_members(definition.endpoints)
        # Raw string order, so output never depends on probe completion order.
        ready = sorted(r.endpoint for r in results if r.ready)

        if not ready and definition.endpoints:
            self.logger.warning(
                "Hashring %s has no ready endpoints out of %d",
                definition.hashring or "<default>",
                len(definition.endpoints),
            )
        return definition.with_endpoints(ready)

    async def reconcile_all(self, hashrings: list[HashringDefinition]) -> list[HashringDefinition]:
        """Reconcile all definitions of one file, keeping file order."""
        return list(await asyncio.gather(*(self.reconcile(h) for h in hashrings)))
