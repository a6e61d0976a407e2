"""Web dashboard for the spread monitor"""
import asyncio
import logging
from collections import deque
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import DASHBOARD_HISTORY, BotConfig
from scheduler import PollingLoop, TickReport

logger = logging.getLogger(__name__)

app = FastAPI(title="Cross-Venue Spread Monitor", version="1.0.0")


class DashboardManager:
    """Reporting sink that keeps recent ticks and pushes them to WebSocket clients"""

    def __init__(self, history_size: int = DASHBOARD_HISTORY):
        self.active_connections: list[WebSocket] = []
        self.loop: Optional[PollingLoop] = None
        self.config: Optional[BotConfig] = None
        self.history: deque[TickReport] = deque(maxlen=history_size)
        self._broadcasts: set[asyncio.Task] = set()

    def set_loop(self, loop: PollingLoop, config: Optional[BotConfig] = None):
        """Attach the polling loop and register as its tick sink"""
        self.loop = loop
        self.config = config
        loop.on_tick(self.on_tick)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"Dashboard client connected. Total: {len(self.active_connections)}")
        await websocket.send_json({"type": "state", "data": self.get_state()})

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"Dashboard client disconnected. Total: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Broadcast message to all connected clients"""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Broadcast error: {e}")
                self.disconnect(connection)

    def on_tick(self, report: TickReport):
        self.history.append(report)
        if self.active_connections:
            task = asyncio.create_task(self.broadcast({"type": "tick", "data": report.to_dict()}))
            self._broadcasts.add(task)
            task.add_done_callback(self._broadcasts.discard)

    def get_state(self) -> dict:
        state = self.loop.get_state() if self.loop else {"running": False, "last_tick": None}
        state["history"] = [r.to_dict() for r in self.history]
        if self.config:
            state["config"] = {
                "pair": f"{self.config.tokens.base.symbol}/{self.config.tokens.quote.symbol}",
                "venues": [v.name for v in self.config.venues],
                "trade_amount": self.config.trade_amount,
                "fee_estimate_usd": self.config.fee_usd,
                "min_profit_threshold_usd": self.config.min_profit_threshold_usd,
                "poll_interval_s": self.config.poll_interval_s,
                "fetch_timeout_s": self.config.fetch_timeout_s,
            }
        return state


manager = DashboardManager()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            # Keep connection alive, handle any client messages
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        manager.disconnect(websocket)


@app.get("/api/state")
async def get_state():
    """Counters, latest tick and recent history"""
    return manager.get_state()


@app.get("/api/health")
async def health():
    if not manager.loop:
        return {"status": "starting"}
    return {"status": "ok" if manager.loop.running else "stopped", "ticks": manager.loop.ticks}
