import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from samsung_tv_bridge.domain.devices.control_point import ControlPoint
from samsung_tv_bridge.domain.devices.models import Active, Characteristic
from samsung_tv_bridge.domain.devices.registry import DeviceRegistry
from samsung_tv_bridge.domain.devices.scheduler import RefreshScheduler, TaskScheduler
from samsung_tv_bridge.domain.errors import PersistenceError, RemoteControlError
from tests.conftest import InMemoryStore, make_descriptor


@pytest.fixture
def registry():
    return DeviceRegistry(InMemoryStore())


class TestRefreshScheduler:
    @pytest.mark.asyncio
    async def test_start_registers_loops(self, registry, mock_discovery, mock_remote, fake_scheduler):
        refresh = RefreshScheduler(
            registry, mock_discovery, mock_remote, fake_scheduler, coarse_interval=300, poll_interval=15
        )
        control_points = [ControlPoint("uuid:tv-1", "TV 1"), ControlPoint("uuid:tv-2", "TV 2")]

        refresh.start(control_points)
        refresh.start(control_points)

        intervals = sorted(interval for interval, _, _ in fake_scheduler.loops)
        assert intervals == [15, 15, 300]

        await refresh.stop()
        assert fake_scheduler.cancelled_all

    @pytest.mark.asyncio
    async def test_poll_publishes_observed_state(self, registry, mock_discovery, mock_remote, fake_scheduler):
        await registry.reconcile([make_descriptor()])
        refresh = RefreshScheduler(registry, mock_discovery, mock_remote, fake_scheduler)
        cp = ControlPoint("uuid:tv-1", "TV")

        await refresh.poll_device(cp)
        assert cp.values[Characteristic.ACTIVE] == Active.ACTIVE

        mock_remote.get_active.return_value = False
        await refresh.poll_device(cp)
        assert cp.values[Characteristic.ACTIVE] == Active.INACTIVE

    @pytest.mark.asyncio
    async def test_poll_failure_publishes_inactive(self, registry, mock_discovery, mock_remote, fake_scheduler):
        await registry.reconcile([make_descriptor()])
        mock_remote.get_active.side_effect = RemoteControlError("unreachable")
        refresh = RefreshScheduler(registry, mock_discovery, mock_remote, fake_scheduler)
        cp = ControlPoint("uuid:tv-1", "TV")
        callback = MagicMock()
        cp.subscribe(callback)

        await refresh.poll_device(cp)

        assert cp.values[Characteristic.ACTIVE] == Active.INACTIVE
        callback.assert_called_once_with("uuid:tv-1", Characteristic.ACTIVE, Active.INACTIVE)

    @pytest.mark.asyncio
    async def test_rediscover_reconciles(self, registry, mock_discovery, mock_remote, fake_scheduler):
        refresh = RefreshScheduler(registry, mock_discovery, mock_remote, fake_scheduler)

        await refresh.rediscover()

        mock_discovery.discover.assert_awaited_once()
        assert registry.get("uuid:tv-1") is not None

    @pytest.mark.asyncio
    async def test_rediscover_swallows_persistence_errors(self, mock_discovery, mock_remote, fake_scheduler):
        registry = MagicMock()
        registry.refresh = AsyncMock(side_effect=PersistenceError("disk full"))
        refresh = RefreshScheduler(registry, mock_discovery, mock_remote, fake_scheduler)

        await refresh.rediscover()

        registry.refresh.assert_awaited_once_with(mock_discovery)


class TestTaskScheduler:
    @pytest.mark.asyncio
    async def test_call_later_and_cancel(self):
        scheduler = TaskScheduler()
        fired = []

        scheduler.call_later(0.01, lambda: fired.append("kept"))
        handle = scheduler.call_later(0.01, lambda: fired.append("cancelled"))
        handle.cancel()
        await asyncio.sleep(0.05)

        assert fired == ["kept"]

    @pytest.mark.asyncio
    async def test_every_keeps_running_after_errors(self):
        scheduler = TaskScheduler()
        runs = []

        async def job():
            runs.append(len(runs))
            if len(runs) == 1:
                raise RuntimeError("first run fails")

        scheduler.every(0.01, job, name="job")
        await asyncio.sleep(0.1)
        await scheduler.cancel_all()
        count = len(runs)
        await asyncio.sleep(0.03)

        assert count >= 2
        assert len(runs) == count

    @pytest.mark.asyncio
    async def test_cancel_all_cancels_timers(self):
        scheduler = TaskScheduler()
        fired = []
        scheduler.call_later(0.01, lambda: fired.append(True))

        await scheduler.cancel_all()
        await asyncio.sleep(0.03)

        assert fired == []

    @pytest.mark.asyncio
    async def test_fired_timers_are_released(self):
        scheduler = TaskScheduler()
        fired = []

        for i in range(50):
            scheduler.call_later(0, lambda i=i: fired.append(i))
        await asyncio.sleep(0.01)

        assert len(fired) == 50
        assert scheduler.pending_timers == 0
        assert len(scheduler._timers) == 0
