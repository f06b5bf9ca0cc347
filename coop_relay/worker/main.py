"""Relay agent process entry point."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from coop_relay.config import AppSettings, load_settings
from coop_relay.service import RelayAgent, build_agent
from coop_relay.web.app import create_app


LOGGER = logging.getLogger("coop_relay.worker")


async def _run_headless(agent: RelayAgent) -> None:
    await agent.start()
    try:
        await asyncio.Event().wait()
    finally:
        await agent.stop()


def _serve(agent: RelayAgent, settings: AppSettings) -> None:
    if settings.control_port > 0:
        LOGGER.info("Control API on http://%s:%s", settings.control_host, settings.control_port)
        uvicorn.run(
            create_app(agent),
            host=settings.control_host,
            port=settings.control_port,
            log_level=settings.log_level.lower(),
        )
    else:
        asyncio.run(_run_headless(agent))


def run() -> None:
    """Run the relay agent until interrupted."""
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    LOGGER.info("Starting relay agent against backend %s", settings.backend_url)
    agent = build_agent(settings)
    try:
        _serve(agent, settings)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutting down")
    finally:
        agent.client.close()


if __name__ == "__main__":
    run()
