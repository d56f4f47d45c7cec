import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from samsung_tv_bridge.domain.devices.control_point import ControlPoint
from samsung_tv_bridge.domain.devices.models import Active, Characteristic
from samsung_tv_bridge.domain.devices.registry import DeviceRegistry
from samsung_tv_bridge.domain.ports import DiscoveryPort, RemoteControlPort

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_INTERVAL = 300.0
DEFAULT_POLL_INTERVAL = 15.0


class TaskScheduler:
    """Timers and periodic loops on the running event loop, all cancellable."""

    def __init__(self):
        self._tasks: List[asyncio.Task] = []
        self._timers: Set[asyncio.TimerHandle] = set()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        """
        Schedule a one-shot callback.

        Args:
            delay: Seconds to wait
            callback: Plain callable run on the event loop

        Returns:
            Handle whose ``cancel()`` prevents the callback from running
        """
        def run() -> None:
            self._timers.discard(handle)
            callback()

        handle = asyncio.get_running_loop().call_later(delay, run)
        self._timers = {timer for timer in self._timers if not timer.cancelled()}
        self._timers.add(handle)
        return handle

    @property
    def pending_timers(self) -> int:
        """Number of one-shot callbacks that have neither run nor been cancelled."""
        return sum(1 for timer in self._timers if not timer.cancelled())

    def every(
        self,
        interval: float,
        coro_factory: Callable[[], Awaitable[None]],
        name: Optional[str] = None
    ) -> asyncio.Task:
        """
        Start a loop that awaits ``coro_factory()`` every ``interval`` seconds.

        The first run happens after one interval. Errors raised by a run are
        logged and the loop keeps going.
        """
        task = asyncio.create_task(self._run_periodically(interval, coro_factory, name), name=name)
        self._tasks.append(task)
        return task

    async def cancel_all(self) -> None:
        """Cancel every timer and loop and wait for the loops to finish."""
        logger.debug(f"Cancelling {self.pending_timers} timers and {len(self._tasks)} periodic tasks")
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_periodically(
        self,
        interval: float,
        coro_factory: Callable[[], Awaitable[None]],
        name: Optional[str]
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await coro_factory()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in periodic task {name or ''}: {str(e)}")


class RefreshScheduler:
    """
    Keeps the device list and each device's power state current.

    A coarse loop re-runs discovery and reconciliation, and one fine loop per
    control point polls whether the device is reachable.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        discovery: DiscoveryPort,
        remote: RemoteControlPort,
        scheduler: TaskScheduler,
        coarse_interval: float = DEFAULT_DISCOVERY_INTERVAL,
        poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        self.registry = registry
        self.discovery = discovery
        self.remote = remote
        self.scheduler = scheduler
        self.coarse_interval = coarse_interval
        self.poll_interval = poll_interval
        self._control_points: Dict[str, ControlPoint] = {}
        self._started = False

    def start(self, control_points: Iterable[ControlPoint]) -> None:
        """Start the discovery loop and one polling loop per control point."""
        if self._started:
            logger.warning("Refresh scheduler already started")
            return
        self._started = True
        self._control_points = {cp.usn: cp for cp in control_points}

        self.scheduler.every(self.coarse_interval, self.rediscover, name="rediscover")
        for control_point in self._control_points.values():
            self.scheduler.every(
                self.poll_interval,
                self._poller(control_point),
                name=f"poll:{control_point.usn}",
            )
        logger.info(
            f"Refresh scheduler started: discovery every {self.coarse_interval}s, "
            f"polling {len(self._control_points)} devices every {self.poll_interval}s"
        )

    async def stop(self) -> None:
        await self.scheduler.cancel_all()
        self._started = False
        logger.info("Refresh scheduler stopped")

    async def rediscover(self) -> None:
        """Run one discovery and reconciliation pass; errors are logged only."""
        try:
            devices = await self.registry.refresh(self.discovery)
        except Exception as e:
            logger.error(f"Periodic device refresh failed: {str(e)}")
            return

        for device in devices:
            if device.discovered and not device.ignore and device.usn not in self._control_points:
                logger.info(
                    f'Found new device "{device.display_name}" ({device.model_name}), '
                    f'usn: "{device.usn}". Restart the bridge to register its controls.'
                )

    async def poll_device(self, control_point: ControlPoint) -> None:
        """Publish the observed power state; any failure publishes INACTIVE."""
        state = Active.INACTIVE
        device = self.registry.get(control_point.usn)
        if device is not None:
            try:
                if await self.remote.get_active(device):
                    state = Active.ACTIVE
            except Exception as e:
                logger.debug(f'Polling "{device.display_name}" failed: {str(e)}')
        control_point.update_value(Characteristic.ACTIVE, state)

    def _poller(self, control_point: ControlPoint) -> Callable[[], Awaitable[None]]:
        async def poll() -> None:
            await self.poll_device(control_point)
        return poll
