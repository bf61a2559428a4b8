
# status handlers: the output layer of a monitoring cycle.

# each handler receives a RegionStatus the moment its region finishes and
# decides what to do with it. formatting lives here; RegionStatus stays a
# pure data container.

# to add a new output target, implement a class with:
#     async def handle(self, status: RegionStatus) -> None: ...
# and pass it into RegionMonitor.

from datetime import datetime, timezone
from typing import Protocol

from region_monitor.models import RegionStatus, Status


_R = "\033[0m"   # reset

_STATUS_COLOR: dict[Status, str] = {
    Status.ONLINE:  "\033[32m",   # green
    Status.OFFLINE: "\033[31m",   # red
}


class StatusHandler(Protocol):
    async def handle(self, status: RegionStatus) -> None: ...


def _ts() -> str:
    """ISO 8601 UTC timestamp, e.g. 2026-10-19T12:39:08Z"""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _color_status(status: Status) -> str:
    c = _STATUS_COLOR.get(status, "")
    return f"{c}{status.value.upper()}{_R}" if c else status.value.upper()


class ConsoleStatusHandler:
    """
    Emits one line per completed region check to stdout.

    Format:
        [2026-10-19T12:39:08Z] Mamoudzou | ONLINE | Connectivity=20.0% | Responding=1/5 | Ranges=1

    Pipe-delimited so the line stays cut/awk friendly; colour is applied to
    the status field only.
    """

    def __init__(self, color: bool = True) -> None:
        self._color = color

    async def handle(self, status: RegionStatus) -> None:
        print(self._format(status), flush=True)

    def _format(self, s: RegionStatus) -> str:
        state = _color_status(s.status) if self._color else s.status.value.upper()
        return (
            f"[{_ts()}] "
            f"{s.name} | "
            f"{state} | "
            f"Connectivity={s.connectivity_percent:.1f}% | "
            f"Responding={s.responding_count}/{s.total_probed} | "
            f"Ranges={len(s.ranges)}"
        )
