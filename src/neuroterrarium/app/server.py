from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import AsyncIterator, Dict, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import SimulationConfig
from ..sim.core.simulation import Simulation
from .clock import FixedStepClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    """Drives a :class:`Simulation` from the event loop and fans snapshots out to clients.

    The clock task only enqueues snapshots. Each client has its own sender
    task, so a slow or broken client never delays a tick. The queue is
    bounded: when clients fall behind the oldest frames are dropped.
    """

    def __init__(
        self,
        config: SimulationConfig,
        broadcast_interval: int = 1,
        max_queued_snapshots: int = 32,
        max_steps_per_frame: int = 5,
    ):
        self.config = config
        self.simulation = Simulation(config)
        self.clock = FixedStepClock(config.time_step, max_steps_per_frame)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._client_ready: Dict[WebSocket, asyncio.Event] = {}
        self._client_tasks: Dict[WebSocket, asyncio.Task] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=max(1, max_queued_snapshots))
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.simulation.tick

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
            self._loop_task.add_done_callback(self._on_loop_done)
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        for client in list(self.clients):
            await self.unregister(client)
        task = self._loop_task
        self._loop_task = None
        if task is None:
            return
        # Waiting on the lock lets an in-flight tick finish before the task goes.
        async with self._lock:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def reset(self) -> None:
        async with self._lock:
            self.simulation.reset()
            self.clock.reset()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def register(self, client: WebSocket) -> None:
        self.clients.add(client)
        self._client_last_sent[client] = -1
        ready = asyncio.Event()
        ready.set()
        self._client_ready[client] = ready
        self._client_tasks[client] = asyncio.create_task(self._client_sender(client, ready))

    async def unregister(self, client: WebSocket) -> None:
        task = self._drop_client(client)
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def advance(self, elapsed: float) -> int:
        """Run however many fixed steps ``elapsed`` host seconds are worth."""
        steps = self.clock.advance(elapsed * self.speed_multiplier)
        last_broadcast = False
        for _ in range(steps):
            async with self._lock:
                self.simulation.step()
            last_broadcast = self.tick % self.broadcast_interval == 0
        if last_broadcast:
            await self._broadcast_snapshot()
        return steps

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        previous = loop.time()
        while True:
            await asyncio.sleep(self.config.time_step)
            now = loop.time()
            elapsed = now - previous
            previous = now
            if not self.running:
                continue
            await self.advance(elapsed)

    def _on_loop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("simulation loop stopped at tick %d", self.tick, exc_info=exc)
        if self._loop_task is task:
            self._loop_task = None

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.simulation.latest_snapshot
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": asdict(snapshot),
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        if client in self._client_last_sent:
            self._client_last_sent[client] = last_sent

    async def _client_sender(self, client: WebSocket, ready: asyncio.Event) -> None:
        while True:
            await ready.wait()
            ready.clear()
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                logger.debug("dropping disconnected client")
                self._drop_client(client)
                return
            except Exception:
                logger.warning("dropping client after failed send", exc_info=True)
                self._drop_client(client)
                return

    def _drop_client(self, client: WebSocket) -> asyncio.Task | None:
        self.clients.discard(client)
        self._client_last_sent.pop(client, None)
        self._client_ready.pop(client, None)
        return self._client_tasks.pop(client, None)

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        for ready in self._client_ready.values():
            ready.set()


controller = SimulationController(SimulationConfig())


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    await controller.start()
    try:
        yield
    finally:
        await controller.shutdown()


app = FastAPI(title="Neuroterrarium", lifespan=_lifespan)


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = controller.simulation.metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": controller.simulation.world.agent_count,
            "max_generation": controller.simulation.population.max_generation,
            "speed": controller.speed_multiplier,
            "metrics": asdict(metrics) if metrics is not None else None,
        }
    )


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    await controller.register(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        pass
    finally:
        await controller.unregister(websocket)


__all__ = ["app", "controller", "SimulationController"]
