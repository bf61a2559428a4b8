
# RegionChecker: one connectivity check for a single region.

# responsibilities:
#   - sample a bounded set of addresses from the region's ranges
#   - probe them in batches of ADDRESS_BATCH_SIZE
#   - fold the probe results into a RegionStatus
#
# Nothing here touches the StatusStore; RegionMonitor decides what to do with
# the result (and with any exception raised).

import asyncio
import logging

from region_monitor.aggregator import aggregate
from region_monitor.config import Settings
from region_monitor.errors import CheckInterrupted
from region_monitor.models import ProbeResult, Region, RegionStatus
from region_monitor.prober import Prober
from region_monitor.sampler import SampledAddress, sample_region
from region_monitor.scheduler import run_in_batches


class RegionChecker:

    def __init__(
        self,
        prober: Prober,
        settings: Settings,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self._prober = prober
        self._settings = settings
        self._stop_event = stop_event

    async def check(self, region: Region) -> RegionStatus:
        region_log = logging.getLogger(f"checker.{region.name.lower()}")
        samples = sample_region(
            region,
            max_ranges=self._settings.ranges_per_region,
            max_per_range=self._settings.addresses_per_range,
        )
        region_log.debug("Checking %s: %d address(es) sampled", region.name, len(samples))

        async def probe_one(sample: SampledAddress) -> ProbeResult:
            reachable = await self._probe(sample.address, region_log)
            return ProbeResult(sample.address, reachable, sample.source)

        outcomes = await run_in_batches(
            samples,
            self._settings.address_batch_size,
            probe_one,
            stop_event=self._stop_event,
        )
        if len(outcomes) < len(samples):
            # shutdown cut the region short; a partial sample would understate it
            raise CheckInterrupted(f"check of {region.name} interrupted by shutdown")

        results = [
            outcome if isinstance(outcome, ProbeResult) else ProbeResult(sample.address, False, sample.source)
            for sample, outcome in zip(samples, outcomes)
        ]
        status = aggregate(region, results)

        region_log.info(
            "%s: %d/%d responding (%.2f%%) -> %s",
            region.name,
            status.responding_count,
            status.total_probed,
            status.connectivity_percent,
            status.status.value,
        )
        return status

    async def _probe(self, address: str, region_log: logging.Logger) -> bool:
        # Probers already swallow their own failures; this only guards
        # against an implementation that breaks the contract.
        try:
            return bool(await self._prober.probe(address))
        except asyncio.CancelledError:
            raise
        except Exception:
            region_log.warning("Prober raised for %s; counting as unreachable", address, exc_info=True)
            return False
