import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


MIN_ADDRESS = 0
MAX_ADDRESS = 2 ** 32 - 1


def ip_to_int(value: str | int) -> int:
    """
    Convert a dotted-quad string (or an int already in range) to its uint32 form.

    Raises ValueError for anything that is not a valid IPv4 address.
    """
    if isinstance(value, bool):
        raise ValueError(f"not an IPv4 address: {value!r}")
    if isinstance(value, int):
        return int(ipaddress.IPv4Address(value))
    text = str(value).strip()
    if text.isdigit():
        # numeric column form, e.g. "167772160"
        return int(ipaddress.IPv4Address(int(text)))
    return int(ipaddress.IPv4Address(text))


def int_to_ip(value: int) -> str:
    return str(ipaddress.IPv4Address(value))


def format_dt(dt: datetime | None) -> str:
    """ISO 8601 UTC with a Z suffix, e.g. 2026-10-19T12:39:08Z"""
    if dt is None:
        return "Unknown"
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True, order=True)
class AddressRange:
    """
    One contiguous, inclusive block of IPv4 addresses stored as uint32.

    Ordering is by (start, end), so sorted() gives address order.
    """
    start: int
    end: int

    def __post_init__(self) -> None:
        if not (MIN_ADDRESS <= self.start <= MAX_ADDRESS and MIN_ADDRESS <= self.end <= MAX_ADDRESS):
            raise ValueError(f"address out of IPv4 range: {self.start}-{self.end}")
        if self.start > self.end:
            raise ValueError(f"inverted range: {int_to_ip(self.start)} > {int_to_ip(self.end)}")

    @classmethod
    def from_strings(cls, start: str | int, end: str | int) -> "AddressRange":
        return cls(ip_to_int(start), ip_to_int(end))

    @property
    def start_ip(self) -> str:
        return int_to_ip(self.start)

    @property
    def end_ip(self) -> str:
        return int_to_ip(self.end)

    @property
    def spans_everything(self) -> bool:
        """True for 0.0.0.0-255.255.255.255, which says nothing about any region."""
        return self.start == MIN_ADDRESS and self.end == MAX_ADDRESS

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start_ip, "end": self.end_ip}

    def __str__(self) -> str:
        return f"{self.start_ip}-{self.end_ip}"


@dataclass(frozen=True)
class Region:
    """
    A named geographic area and the address ranges that belong to it.

    Built once by the loader and never mutated; a reload swaps in a new set
    of Region objects.
    """
    name: str
    coordinates: tuple[float, float]          # (longitude, latitude)
    ranges: tuple[AddressRange, ...] = ()


@dataclass(frozen=True)
class ProbeResult:
    address: str
    reachable: bool
    source: AddressRange | None = None


class Status(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class RegionStatus:
    """
    Outcome of one region check in one cycle.

    Frozen so that a store entry can only ever be replaced as a whole; a
    reader holding a reference never sees fields from two different cycles.
    """
    name: str
    coordinates: tuple[float, float]
    status: Status
    connectivity_percent: float
    last_checked: datetime
    total_probed: int
    responding_count: int
    ranges: tuple[AddressRange, ...] = field(default_factory=tuple)

    @property
    def online(self) -> bool:
        return self.status is Status.ONLINE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "coordinates": list(self.coordinates),
            "status": self.status.value,
            "connectivityPercent": self.connectivity_percent,
            "lastChecked": format_dt(self.last_checked),
            "totalProbed": self.total_probed,
            "respondingCount": self.responding_count,
            "ranges": [r.to_dict() for r in self.ranges],
        }
