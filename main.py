import asyncio
import logging
import os
import platform
import signal
import sys

from dotenv import load_dotenv

from region_monitor.config import Settings
from region_monitor.errors import DataLoadError
from region_monitor.handlers import ConsoleStatusHandler
from region_monitor.loader import load_regions_csv
from region_monitor.orchestrator import RegionMonitor
from region_monitor.prober import open_prober
from region_monitor.server import create_app, start_server

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
)
log = logging.getLogger("main")


async def main() -> None:
    settings = Settings.from_env()
    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()

    try:
        regions = load_regions_csv(settings.data_path)
    except DataLoadError as exc:
        # keep serving so the status route can say why nothing is there
        log.error("Failed to load region data, monitoring disabled: %s", exc)
        regions = None

    async with open_prober(settings) as prober:
        monitor = None
        if regions is not None:
            monitor = RegionMonitor(regions, prober, settings, handlers=[ConsoleStatusHandler()])

        runner = await start_server(create_app(monitor), settings.host, settings.port)

        def _shutdown(sig: signal.Signals) -> None:
            log.info("Received %s, shutting down gracefully...", sig.name)
            stopped.set()
            if monitor is not None:
                monitor.stop()

        if platform.system() != "Windows":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, _shutdown, sig)

        try:
            if monitor is not None:
                await monitor.run()
            else:
                await stopped.wait()
        except (asyncio.CancelledError, KeyboardInterrupt):
            log.info("Shutting down...")
            if monitor is not None:
                monitor.stop()
        finally:
            await runner.cleanup()
            log.info("Monitor stopped.")


if __name__ == "__main__":
    asyncio.run(main())
