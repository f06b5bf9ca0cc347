"""FastAPI control surface for a running relay agent."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from coop_relay.service import RelayAgent


class RtspOverrideBody(BaseModel):
    rtsp_url: str | None = None


def get_agent(request: Request) -> RelayAgent:
    return request.app.state.agent


def create_app(agent: RelayAgent, manage_agent: bool = True) -> FastAPI:
    """Build the app around an injected agent; by default its lifespan starts and stops it."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_agent:
            await agent.start()
        try:
            yield
        finally:
            if manage_agent:
                await agent.stop()

    app = FastAPI(title="Coop Relay", lifespan=lifespan)
    app.state.agent = agent

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/state")
    async def read_state(request: Request) -> dict[str, Any]:
        return get_agent(request).state_snapshot()

    @app.post("/api/pairing/request")
    async def request_pairing_code(request: Request) -> dict[str, Any]:
        relay = get_agent(request)
        ok = await relay.request_pairing_code()
        if not ok:
            raise HTTPException(status_code=409, detail=relay.pairing.message)
        return relay.state_snapshot()

    @app.post("/api/pairing/reset")
    async def reset_pairing(request: Request) -> dict[str, Any]:
        relay = get_agent(request)
        ok = await relay.reset_pairing()
        if not ok:
            raise HTTPException(status_code=409, detail=relay.pairing.message)
        return relay.state_snapshot()

    @app.post("/api/capture")
    async def capture_now(request: Request) -> dict[str, Any]:
        result = await get_agent(request).capture_now()
        return {
            "ok": result.ok,
            "message": result.message,
            "trigger": result.trigger,
            "image_path": result.image_path,
            "finished_at": result.finished_at.isoformat(),
        }

    @app.put("/api/rtsp-override")
    async def set_rtsp_override(body: RtspOverrideBody, request: Request) -> dict[str, Any]:
        relay = get_agent(request)
        await relay.set_rtsp_override(body.rtsp_url)
        return relay.state_snapshot()

    return app
