# tests/test_orchestrator.py
import asyncio

import pytest

import region_monitor.orchestrator as orchestrator
from fakes import RecordingHandler, ScriptedProber, make_region
from region_monitor.config import Settings
from region_monitor.errors import NotReadyError
from region_monitor.models import Status
from region_monitor.orchestrator import MonitorState, RegionMonitor


def _regions():
    return [
        make_region("Mamoudzou", ("10.0.0.0", "10.0.0.10")),
        make_region("Dzaoudzi", ("10.1.0.0", "10.1.0.10")),
        make_region("Sada", ("10.2.0.0", "10.2.0.10")),
    ]


def test_status_is_not_ready_before_first_cycle():
    async def scenario():
        monitor = RegionMonitor(_regions(), ScriptedProber())
        with pytest.raises(NotReadyError):
            monitor.get_status()
        assert monitor.state is MonitorState.IDLE
        await monitor.run_cycle()
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.ready
    assert {s.name for s in monitor.get_status()} == {"Mamoudzou", "Dzaoudzi", "Sada"}
    assert monitor.state is MonitorState.IDLE


def test_cycle_updates_store_and_handlers():
    handler = RecordingHandler()

    async def scenario():
        prober = ScriptedProber(reachable={"10.0.0.0", "10.1.0.10"})
        monitor = RegionMonitor(_regions(), prober, handlers=[handler])
        updates = await monitor.run_cycle()
        return monitor, updates

    monitor, updates = asyncio.run(scenario())
    assert len(updates) == 3
    assert [s.name for s in updates if s.online] == ["Mamoudzou", "Dzaoudzi"]
    assert {s.name for s in handler.seen} == {"Mamoudzou", "Dzaoudzi", "Sada"}
    assert monitor.store.get("Mamoudzou").status is Status.ONLINE
    assert monitor.store.get("Dzaoudzi").status is Status.ONLINE
    assert monitor.store.get("Sada").status is Status.OFFLINE


def test_region_batches_cap_total_concurrency():
    regions = [make_region(f"R{i}", (f"10.{i}.0.0", f"10.{i}.0.255")) for i in range(5)]

    async def scenario():
        prober = ScriptedProber(delay=0.01)
        settings = Settings(region_batch_size=2, address_batch_size=3)
        await RegionMonitor(regions, prober, settings).run_cycle()
        return prober

    prober = asyncio.run(scenario())
    assert len(prober.calls) == 25
    assert prober.peak <= 2 * 3


def test_statuses_become_visible_before_cycle_ends():
    regions = [make_region("Fast", ("10.0.0.0", "10.0.0.0")), make_region("Slow", ("10.9.0.0", "10.9.0.0"))]

    async def scenario():
        gate = asyncio.Event()

        class SlowForOne(ScriptedProber):
            async def probe(self, address):
                if address == "10.9.0.0":
                    await gate.wait()
                return await super().probe(address)

        monitor = RegionMonitor(regions, SlowForOne(), Settings(region_batch_size=2))
        cycle = asyncio.create_task(monitor.run_cycle())
        while "Fast" not in monitor.store:
            await asyncio.sleep(0.001)
        mid_cycle = ("Slow" in monitor.store, monitor.state)
        gate.set()
        await cycle
        return mid_cycle

    slow_present, state = asyncio.run(scenario())
    assert slow_present is False
    assert state is MonitorState.CYCLE_RUNNING


def test_second_trigger_while_running_is_dropped(monkeypatch):
    depth = {"now": 0, "peak": 0}
    real_run_in_batches = orchestrator.run_in_batches

    async def counting_run_in_batches(*args, **kwargs):
        depth["now"] += 1
        depth["peak"] = max(depth["peak"], depth["now"])
        try:
            return await real_run_in_batches(*args, **kwargs)
        finally:
            depth["now"] -= 1

    monkeypatch.setattr(orchestrator, "run_in_batches", counting_run_in_batches)

    async def scenario():
        gate = asyncio.Event()
        prober = ScriptedProber(gate=gate)
        monitor = RegionMonitor([make_region("Mamoudzou", ("10.0.0.0", "10.0.0.10"))], prober)

        first = asyncio.create_task(monitor.run_cycle())
        while monitor.state is not MonitorState.CYCLE_RUNNING:
            await asyncio.sleep(0)
        second = await monitor.run_cycle()
        third = await monitor.run_cycle()
        gate.set()
        return await first, second, third, prober

    first, second, third, prober = asyncio.run(scenario())
    assert second is None
    assert third is None
    assert len(first) == 1
    assert depth["peak"] == 1
    assert len(prober.calls) == 5


def test_failing_region_keeps_previous_entry(monkeypatch):
    async def scenario():
        prober = ScriptedProber(reachable={"10.0.0.0", "10.1.0.0", "10.2.0.0"})
        monitor = RegionMonitor(_regions(), prober)
        await monitor.run_cycle()
        before = {s.name: s for s in monitor.get_status()}

        prober.reachable = set()
        real_check = monitor._checker.check

        async def flaky_check(region):
            if region.name == "Dzaoudzi":
                raise RuntimeError("routing table exploded")
            return await real_check(region)

        monkeypatch.setattr(monitor._checker, "check", flaky_check)
        updates = await monitor.run_cycle()
        after = {s.name: s for s in monitor.get_status()}
        return before, after, updates

    before, after, updates = asyncio.run(scenario())
    assert {s.name for s in updates} == {"Mamoudzou", "Sada"}
    assert after["Dzaoudzi"] is before["Dzaoudzi"]
    assert after["Dzaoudzi"].status is Status.ONLINE
    assert after["Mamoudzou"].status is Status.OFFLINE
    assert after["Sada"].status is Status.OFFLINE


def test_failing_handler_does_not_fail_the_cycle():
    class BrokenHandler:
        async def handle(self, status):
            raise RuntimeError("stdout closed")

    async def scenario():
        monitor = RegionMonitor(_regions(), ScriptedProber(), handlers=[BrokenHandler()])
        return await monitor.run_cycle(), monitor

    updates, monitor = asyncio.run(scenario())
    assert len(updates) == 3
    assert len(monitor.store) == 3


def test_stop_lets_current_batch_finish_and_schedules_nothing_more():
    async def scenario():
        settings = Settings(region_batch_size=1)
        monitor = None

        class StopAfterFirst(RecordingHandler):
            async def handle(self, status):
                await super().handle(status)
                monitor.stop()

        handler = StopAfterFirst()
        monitor = RegionMonitor(_regions(), ScriptedProber(), settings, handlers=[handler])
        updates = await monitor.run_cycle()
        after_stop = await monitor.run_cycle()
        return monitor, updates, after_stop

    monitor, updates, after_stop = asyncio.run(scenario())
    assert [s.name for s in updates] == ["Mamoudzou"]
    assert after_stop is None
    assert monitor.state is MonitorState.STOPPED
    assert len(monitor.store) == 1


def test_startup_cycle_cut_short_leaves_monitor_not_ready():
    async def scenario():
        regions = [make_region(f"R{i}", (f"10.{i}.0.0", f"10.{i}.0.10")) for i in range(4)]
        monitor = None

        class StopAfterFirst(RecordingHandler):
            async def handle(self, status):
                await super().handle(status)
                monitor.stop()

        monitor = RegionMonitor(regions, ScriptedProber(), Settings(region_batch_size=1), handlers=[StopAfterFirst()])
        await monitor.run_cycle()
        return monitor

    monitor = asyncio.run(scenario())
    assert len(monitor.store) == 1
    assert not monitor.ready
    assert monitor.cycles_completed == 0
    with pytest.raises(NotReadyError):
        monitor.get_status()


def test_region_interrupted_mid_check_leaves_monitor_not_ready():
    async def scenario():
        monitor = None

        class StopOnFirstProbe(ScriptedProber):
            async def probe(self, address):
                monitor.stop()
                return await super().probe(address)

        monitor = RegionMonitor(
            [make_region("Mamoudzou", ("10.0.0.0", "10.0.0.10"))],
            StopOnFirstProbe(),
            Settings(address_batch_size=1),
        )
        updates = await monitor.run_cycle()
        return monitor, updates

    monitor, updates = asyncio.run(scenario())
    assert updates == []
    assert len(monitor.store) == 0
    assert not monitor.ready


def test_run_repeats_on_interval_until_stopped():
    async def scenario():
        monitor = RegionMonitor(
            [make_region("Mamoudzou", ("10.0.0.0", "10.0.0.10"))],
            ScriptedProber(),
            Settings(interval_seconds=0.02),
        )
        task = asyncio.create_task(monitor.run())
        while monitor.cycles_completed < 3:
            await asyncio.sleep(0.005)
        monitor.stop()
        await asyncio.wait_for(task, timeout=2)
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.cycles_completed >= 3
    assert monitor.state is MonitorState.STOPPED


def test_stop_interrupts_the_wait_between_cycles():
    async def scenario():
        monitor = RegionMonitor(_regions(), ScriptedProber(), Settings(interval_seconds=3600))
        task = asyncio.create_task(monitor.run())
        while not monitor.ready:
            await asyncio.sleep(0.001)
        monitor.stop()
        await asyncio.wait_for(task, timeout=2)
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.cycles_completed == 1


def test_reload_takes_effect_next_cycle():
    async def scenario():
        monitor = RegionMonitor(_regions()[:1], ScriptedProber())
        await monitor.run_cycle()
        monitor.reload([make_region("Pamandzi", ("10.5.0.0", "10.5.0.3"))])
        await monitor.run_cycle()
        return monitor

    monitor = asyncio.run(scenario())
    assert [r.name for r in monitor.regions] == ["Pamandzi"]
    # previous entries are never evicted
    assert {s.name for s in monitor.get_status()} == {"Mamoudzou", "Pamandzi"}
