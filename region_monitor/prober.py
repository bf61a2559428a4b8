
# Reachability probes: one test against one address, bounded by a timeout.

# Contract shared by every implementation:
#   - probe(address) returns True or False and never raises
#     (asyncio.CancelledError is the one exception allowed through)
#   - every failure mode (refused, timeout, no route, bad address, bug)
#     resolves to False
#   - the socket / subprocess / response acquired for the probe is released
#     on every exit path, once
#
# Exactly one implementation is selected per deployment via
# Settings.probe_method and built by open_prober().

import asyncio
import contextlib
import logging
import math
import platform
from abc import ABC, abstractmethod
from typing import AsyncIterator

import aiohttp

from region_monitor.config import PROBE_PORT, PROBE_TIMEOUT_SECONDS, Settings

log = logging.getLogger(__name__)


class Prober(ABC):
    @abstractmethod
    async def probe(self, address: str) -> bool:
        """Run exactly one reachability test against address."""
        raise NotImplementedError


class TcpConnectProber(Prober):
    """
    Timed TCP connection attempt on a fixed port.

    A completed handshake means reachable. Refusals, resets and timeouts all
    count as unreachable; the connection is closed straight away.
    """

    def __init__(self, port: int = PROBE_PORT, timeout: float = PROBE_TIMEOUT_SECONDS) -> None:
        self.port = port
        self.timeout = timeout

    async def probe(self, address: str) -> bool:
        writer = None
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address, self.port),
                timeout=self.timeout,
            )
            return True
        except (OSError, asyncio.TimeoutError) as exc:
            log.debug("%s:%d unreachable (%s)", address, self.port, type(exc).__name__)
            return False
        except Exception:
            log.debug("Unexpected error probing %s:%d", address, self.port, exc_info=True)
            return False
        finally:
            if writer is not None:
                writer.close()
                with contextlib.suppress(Exception):
                    await writer.wait_closed()


class HttpProber(Prober):
    """
    Timed HEAD request through a shared aiohttp session.

    Any HTTP response, whatever its status, proves the host answered.
    The session is owned by the caller (see open_prober).
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        port: int = PROBE_PORT,
        timeout: float = PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self.port = port
        self.timeout = timeout

    def url_for(self, address: str) -> str:
        scheme = "https" if self.port == 443 else "http"
        return f"{scheme}://{address}:{self.port}/"

    async def probe(self, address: str) -> bool:
        url = self.url_for(address)
        try:
            async with self._session.head(
                url,
                allow_redirects=False,
                ssl=False,  # reachability only; certificates are irrelevant
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                log.debug("%s answered %s", url, resp.status)
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            log.debug("%s unreachable (%s)", url, type(exc).__name__)
            return False
        except Exception:
            log.debug("Unexpected error probing %s", url, exc_info=True)
            return False


class PingProber(Prober):
    """
    One ICMP echo request through the system ping binary.

    The subprocess is killed if it outlives the timeout.
    """

    def __init__(self, timeout: float = PROBE_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    def command(self, address: str) -> list[str]:
        if platform.system() == "Windows":
            return ["ping", "-n", "1", "-w", str(int(self.timeout * 1000)), address]
        # -W takes whole seconds on Linux; the outer wait_for enforces the real limit
        return ["ping", "-c", "1", "-W", str(max(1, math.ceil(self.timeout))), address]

    async def probe(self, address: str) -> bool:
        proc = None
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(address),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.timeout)
            return returncode == 0
        except (OSError, asyncio.TimeoutError) as exc:
            log.debug("%s: no echo reply (%s)", address, type(exc).__name__)
            return False
        except Exception:
            log.debug("Unexpected error pinging %s", address, exc_info=True)
            return False
        finally:
            if proc is not None and proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                # reap the child so its transport closes with it
                await proc.wait()


@contextlib.asynccontextmanager
async def open_prober(settings: Settings) -> AsyncIterator[Prober]:
    """
    Build the configured Prober and hold whatever it needs for its lifetime.

    Only the http method owns a resource (the client session); its connection
    pool is sized to the cycle's concurrency ceiling.
    """
    method = settings.probe_method
    if method == "tcp":
        yield TcpConnectProber(port=settings.probe_port, timeout=settings.probe_timeout_seconds)
    elif method == "icmp":
        yield PingProber(timeout=settings.probe_timeout_seconds)
    elif method == "http":
        connector = aiohttp.TCPConnector(limit=settings.max_concurrent_probes, force_close=True)
        async with aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": "RegionMonitor/1.0 (connectivity-probe)"},
        ) as session:
            yield HttpProber(session, port=settings.probe_port, timeout=settings.probe_timeout_seconds)
    else:
        raise ValueError(f"unknown probe method: {method!r}")
    log.debug("Prober %r closed", method)
