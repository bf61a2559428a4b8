
# Sampler: reduces a region's ranges to a small, fixed set of addresses.

# Regions can own ranges spanning millions of addresses, so a full scan is
# out of the question. Instead every considered range contributes its first
# few addresses plus its last one. Cost per region is therefore bounded by
# ranges_per_region * addresses_per_range no matter how large the ranges are.

# Rules:
#   - full-space ranges (0.0.0.0-255.255.255.255) are dropped before the cut
#   - only the first `max_ranges` remaining ranges are used, in stored order
#   - candidates are start, start+1, ... clipped to the range, plus end
#   - duplicates are removed per range, first-seen order kept

from dataclasses import dataclass
from typing import Iterator

from region_monitor.config import ADDRESSES_PER_RANGE, RANGES_PER_REGION
from region_monitor.models import AddressRange, Region, int_to_ip


@dataclass(frozen=True)
class SampledAddress:
    address: str
    source: AddressRange


def candidate_addresses(rng: AddressRange, max_per_range: int = ADDRESSES_PER_RANGE) -> list[int]:
    """
    Pick up to `max_per_range` addresses from one range.

    The first max_per_range-1 slots walk up from start, the last slot is end.
    A narrow range simply yields fewer addresses.
    """
    if max_per_range < 1:
        return []
    if max_per_range == 1:
        return [rng.start]

    leading = range(rng.start, min(rng.start + max_per_range - 1, rng.end + 1))
    picked: list[int] = []
    for n in (*leading, rng.end):
        if n not in picked:
            picked.append(n)
    return picked


def ranges_to_sample(region: Region, max_ranges: int = RANGES_PER_REGION) -> list[AddressRange]:
    usable = [r for r in region.ranges if not r.spans_everything]
    return usable[:max_ranges]


def iter_samples(
    region: Region,
    max_ranges: int = RANGES_PER_REGION,
    max_per_range: int = ADDRESSES_PER_RANGE,
) -> Iterator[SampledAddress]:
    for rng in ranges_to_sample(region, max_ranges):
        for n in candidate_addresses(rng, max_per_range):
            yield SampledAddress(int_to_ip(n), rng)


def sample_region(
    region: Region,
    max_ranges: int = RANGES_PER_REGION,
    max_per_range: int = ADDRESSES_PER_RANGE,
) -> tuple[SampledAddress, ...]:
    """Materialised form of iter_samples(); safe to iterate more than once."""
    return tuple(iter_samples(region, max_ranges, max_per_range))
