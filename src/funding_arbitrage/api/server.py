"""
FastAPI control surface for the funding arbitrage engine.

Serves strategy snapshots and commands over HTTP and streams event bus
notifications to WebSocket clients.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import orjson
from fastapi import Body, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from funding_arbitrage import __version__
from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.engine import FundingArbitrageEngine
from funding_arbitrage.core.errors import ConfigurationError
from funding_arbitrage.core.event_bus import Event, Notification
from funding_arbitrage.core.types import (
    ExchangeName,
    FundingRate,
    RebalanceResult,
    RebalanceTrigger,
    spread_to_dict,
)


logger = logging.getLogger(__name__)


class EventStream:
    """Fan-out of event bus events to connected WebSocket clients."""

    def __init__(self) -> None:
        self._clients: list[WebSocket] = []

    def add(self, websocket: WebSocket) -> None:
        self._clients.append(websocket)

    def remove(self, websocket: WebSocket) -> None:
        if websocket in self._clients:
            self._clients.remove(websocket)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast(self, event: Event[Any]) -> None:
        if not self._clients:
            return

        message = orjson.dumps(event_to_dict(event)).decode()
        disconnected = []
        for client in self._clients:
            try:
                await client.send_text(message)
            except Exception as e:
                logger.debug(f"Dropping WebSocket client: {e}")
                disconnected.append(client)
        for client in disconnected:
            self.remove(client)


def event_to_dict(event: Event[Any]) -> dict[str, Any]:
    """Convert a bus event to its wire form."""
    payload = event.payload
    if isinstance(payload, Notification):
        data: Any = {"level": payload.level.value, "message": payload.message, "data": payload.data}
    else:
        data = payload
    return {
        "type": event.type.name.lower(),
        "timestamp_us": event.timestamp_us,
        "source": event.source,
        "data": data,
    }


def rate_to_dict(rate: FundingRate) -> dict[str, Any]:
    return {
        "exchange": rate.exchange.value,
        "symbol": rate.symbol,
        "rate": rate.rate,
        "hourly_rate": rate.hourly_rate,
        "annual_rate": rate.annual_rate,
        "mark_price": rate.mark_price,
        "next_funding_time_ms": rate.next_funding_time_ms,
        "payments_per_day": rate.payments_per_day,
        "timestamp_ms": rate.timestamp_ms,
    }


def result_to_dict(result: RebalanceResult) -> dict[str, Any]:
    return {
        "trigger": result.trigger.value,
        "executed": result.executed,
        "skipped_reason": result.skipped_reason,
        "entered": result.entered,
        "exited": result.exited,
        "warnings": result.warnings,
        "errors": result.errors,
        "event": result.event.to_dict() if result.event else None,
    }


def _engine(request: Request) -> FundingArbitrageEngine:
    return request.app.state.engine  # type: ignore[no-any-return]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine: FundingArbitrageEngine = app.state.engine
    stream: EventStream = app.state.stream
    engine.event_bus.subscribe_all(stream.broadcast)
    yield
    engine.event_bus.unsubscribe(None, stream.broadcast)


def create_app(engine: FundingArbitrageEngine) -> FastAPI:
    """
    Build the control API for an engine.

    The engine's own lifecycle (setup/shutdown) is managed by the caller.
    """
    app = FastAPI(title="Funding Arbitrage Engine", version=__version__, lifespan=lifespan)
    app.state.engine = engine
    app.state.stream = EventStream()

    app.add_exception_handler(ConfigurationError, configuration_error_handler)  # type: ignore[arg-type]

    app.get("/api/status")(get_status)
    app.get("/api/spreads")(get_spreads)
    app.get("/api/rates")(get_rates)
    app.get("/api/positions")(get_positions)
    app.get("/api/positions/closed")(get_closed_positions)
    app.get("/api/history")(get_history)
    app.get("/api/events")(get_events)
    app.get("/api/config")(get_config)
    app.put("/api/config")(put_config)
    app.post("/api/start")(start_strategy)
    app.post("/api/stop")(stop_strategy)
    app.post("/api/rebalance")(rebalance_now)
    app.post("/api/positions/{canonical}/close")(close_position)
    app.post("/api/residuals/acknowledge")(acknowledge_residual)
    app.websocket("/ws")(websocket_endpoint)
    return app


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# =============================================================================
# Queries
# =============================================================================


async def get_status(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    return {
        **engine.get_status().to_dict(),
        "paper_mode": engine.settings.paper_mode,
        "metrics": engine.metrics.to_dict(),
    }


async def get_spreads(request: Request) -> list[dict[str, Any]]:
    return [spread_to_dict(s) for s in _engine(request).spreads()]


async def get_rates(request: Request) -> list[dict[str, Any]]:
    return [rate_to_dict(r) for r in _engine(request).all_rates()]


async def get_positions(request: Request) -> list[dict[str, Any]]:
    return [p.to_dict() for p in _engine(request).open_positions()]


async def get_closed_positions(request: Request) -> list[dict[str, Any]]:
    return [p.to_dict() for p in _engine(request).closed_positions()]


async def get_history(request: Request) -> list[dict[str, Any]]:
    return [e.to_dict() for e in _engine(request).rebalance_history()]


async def get_events(request: Request, limit: int = 100) -> list[dict[str, Any]]:
    return _engine(request).events(limit)


async def get_config(request: Request) -> dict[str, Any]:
    return _engine(request).config.model_dump(mode="json")


# =============================================================================
# Commands
# =============================================================================


async def put_config(request: Request, config: StrategyConfig) -> dict[str, Any]:
    engine = _engine(request)
    engine.update_config(config)
    return engine.config.model_dump(mode="json")


async def start_strategy(
    request: Request,
    config: StrategyConfig | None = Body(default=None),
) -> dict[str, Any]:
    result = await _engine(request).start(config)
    return result_to_dict(result)


async def stop_strategy(request: Request) -> dict[str, Any]:
    outcomes = await _engine(request).stop()
    return {
        "closed": [c for c, ok in outcomes.items() if ok],
        "still_open": [c for c, ok in outcomes.items() if not ok],
    }


async def rebalance_now(request: Request) -> dict[str, Any]:
    result = await _engine(request).rebalance(RebalanceTrigger.MANUAL)
    if not result.executed:
        raise HTTPException(status_code=409, detail=result_to_dict(result))
    return result_to_dict(result)


async def close_position(request: Request, canonical: str) -> dict[str, Any]:
    try:
        closed = await _engine(request).close_position(canonical)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"no open position for {canonical}") from None
    return {"canonical": canonical.upper(), "closed": closed}


async def acknowledge_residual(
    request: Request,
    exchange: ExchangeName,
    symbol: str,
) -> dict[str, Any]:
    removed = _engine(request).acknowledge_residual(exchange, symbol)
    if not removed:
        raise HTTPException(
            status_code=404, detail=f"no residual exposure for {exchange.value} {symbol}"
        )
    return {"acknowledged": removed}


# =============================================================================
# Event stream
# =============================================================================


async def websocket_endpoint(websocket: WebSocket) -> None:
    engine: FundingArbitrageEngine = websocket.app.state.engine
    stream: EventStream = websocket.app.state.stream

    await websocket.accept()
    stream.add(websocket)

    await websocket.send_text(
        orjson.dumps({"type": "init", "data": engine.get_status().to_dict()}).decode()
    )

    try:
        while True:
            try:
                msg = orjson.loads(await websocket.receive_text())
            except orjson.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue
            if msg.get("action") == "status":
                await websocket.send_text(
                    orjson.dumps({"type": "status", "data": engine.get_status().to_dict()}).decode()
                )
            elif msg.get("action") == "rebalance":
                result = await engine.rebalance(RebalanceTrigger.MANUAL)
                await websocket.send_text(
                    orjson.dumps({"type": "rebalance_result", "data": result_to_dict(result)}).decode()
                )
    except WebSocketDisconnect:
        pass
    finally:
        stream.remove(websocket)
