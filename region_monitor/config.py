import os
from dataclasses import dataclass, fields

PROBE_METHOD: str = "tcp"            # tcp | http | icmp
PROBE_TIMEOUT_SECONDS: float = 1.0
PROBE_PORT: int = 80
ADDRESS_BATCH_SIZE: int = 5          # concurrent probes per region
REGION_BATCH_SIZE: int = 2           # concurrent regions per cycle
INTERVAL_SECONDS: int = 300          # 5 minutes between cycle starts
RANGES_PER_REGION: int = 3
ADDRESSES_PER_RANGE: int = 5

DATA_PATH: str = "data/monitoring-ranges.csv"
HOST: str = "0.0.0.0"
PORT: int = 5001

PROBE_METHODS: tuple[str, ...] = ("tcp", "http", "icmp")

ENV_PREFIX = "REGION_MONITOR_"

# field name -> env var suffix, where it differs from the upper-cased field name
_ENV_NAMES: dict[str, str] = {
    "probe_timeout_seconds": "PROBE_TIMEOUT",
    "interval_seconds": "INTERVAL",
}


@dataclass(frozen=True)
class Settings:
    probe_method: str = PROBE_METHOD
    probe_timeout_seconds: float = PROBE_TIMEOUT_SECONDS
    probe_port: int = PROBE_PORT
    address_batch_size: int = ADDRESS_BATCH_SIZE
    region_batch_size: int = REGION_BATCH_SIZE
    interval_seconds: float = INTERVAL_SECONDS
    ranges_per_region: int = RANGES_PER_REGION
    addresses_per_range: int = ADDRESSES_PER_RANGE
    data_path: str = DATA_PATH
    host: str = HOST
    port: int = PORT

    def __post_init__(self) -> None:
        if self.probe_method not in PROBE_METHODS:
            raise ValueError(
                f"probe_method must be one of {', '.join(PROBE_METHODS)}, got {self.probe_method!r}"
            )
        if self.probe_timeout_seconds <= 0:
            raise ValueError("probe_timeout_seconds must be positive")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        for name in ("address_batch_size", "region_batch_size", "ranges_per_region", "addresses_per_range"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if not 0 < self.probe_port < 65536:
            raise ValueError("probe_port must be between 1 and 65535")

    @property
    def max_concurrent_probes(self) -> int:
        """Ceiling on simultaneous outbound probes across the whole cycle."""
        return self.address_batch_size * self.region_batch_size

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """
        Build Settings from REGION_MONITOR_* variables, falling back to the
        module defaults for anything unset.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        for f in fields(cls):
            var = ENV_PREFIX + _ENV_NAMES.get(f.name, f.name.upper())
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                if f.type is int:
                    value: object = int(raw)
                elif f.type is float:
                    value = float(raw)
                else:
                    value = raw.strip()
            except ValueError:
                raise ValueError(f"{var}: cannot parse {raw!r}") from None
            overrides[f.name] = value

        return cls(**overrides)
