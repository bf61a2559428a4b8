from datetime import datetime, timezone
from typing import Iterable

from region_monitor.models import ProbeResult, Region, RegionStatus, Status


def aggregate(
    region: Region,
    results: Iterable[ProbeResult],
    checked_at: datetime | None = None,
) -> RegionStatus:
    """
    Fold one region's probe results into a RegionStatus.

    One responding address is enough for the region to count as online;
    connectivity_percent carries the finer signal. A region that produced no
    samples at all is offline at 0%, never a division error.

    Pure: nothing is written anywhere, the caller decides what to do with
    the result.
    """
    results = list(results)
    total = len(results)
    responding = sum(1 for r in results if r.reachable)
    percent = 0.0 if total == 0 else (responding / total) * 100

    return RegionStatus(
        name=region.name,
        coordinates=region.coordinates,
        status=Status.ONLINE if responding > 0 else Status.OFFLINE,
        connectivity_percent=percent,
        last_checked=checked_at or datetime.now(tz=timezone.utc),
        total_probed=total,
        responding_count=responding,
        ranges=region.ranges,
    )
