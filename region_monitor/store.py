
# StatusStore: latest RegionStatus per region, shared between the probing
# path (writer) and the status query path (readers).

# All access goes through a lock and values are frozen dataclasses, so an
# entry is only ever swapped as a whole. get_all() returns a copy; callers
# can iterate it while the next cycle keeps writing.

import threading

from region_monitor.models import RegionStatus


class StatusStore:

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status: dict[str, RegionStatus] = {}   # region name -> latest status

    def upsert(self, region_name: str, status: RegionStatus) -> None:
        if status.name != region_name:
            raise ValueError(f"status for {status.name!r} stored under {region_name!r}")
        with self._lock:
            self._status[region_name] = status

    def get(self, region_name: str) -> RegionStatus | None:
        with self._lock:
            return self._status.get(region_name)

    def get_all(self) -> list[RegionStatus]:
        with self._lock:
            return list(self._status.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._status)

    def __contains__(self, region_name: object) -> bool:
        with self._lock:
            return region_name in self._status
