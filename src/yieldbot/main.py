"""Entry point for the yield strategy agent.

Wires all components together, optionally embeds the FastAPI action surface,
and starts the periodic strategy loop. When the API is enabled (default),
the agent and the API share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. aiohttp ClientSession (shared by both feeds)
2. MarketDataAggregator
3. RiskClassifier
4. TrendDetector
5. StrategySelector
6. Key-value backend + StrategyStore (backend chosen from settings)
7. Web3LedgerClient + AllocationExecutor (only when the ledger is configured)
8. StrategyAgent
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import uvicorn
from fastapi import FastAPI

from yieldbot.config import AppSettings
from yieldbot.execution.allocator import AllocationExecutor
from yieldbot.ledger.web3_client import Web3LedgerClient
from yieldbot.logging import get_logger, setup_logging
from yieldbot.market_data.aggregator import MarketDataAggregator
from yieldbot.orchestrator import StrategyAgent
from yieldbot.risk.classifier import RiskClassifier
from yieldbot.signals.trend import TrendDetector
from yieldbot.storage.store import StrategyStore, build_backend
from yieldbot.strategy.selector import StrategySelector


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all agent components from settings.

    Note: Does NOT connect the store backend -- that happens in the
    lifespan (API mode) or run() (standalone mode).
    """
    logger = get_logger("yieldbot.main")

    session = aiohttp.ClientSession(
        headers={"Accept": "application/json", "User-Agent": "YieldBot/1.0"},
    )
    aggregator = MarketDataAggregator(settings.feed, session=session)
    classifier = RiskClassifier()
    trend_detector = TrendDetector(aggregator)
    selector = StrategySelector(classifier, settings.strategy.target_asset)

    backend = build_backend(settings.store)
    store = StrategyStore(backend)

    ledger: Web3LedgerClient | None = None
    executor: AllocationExecutor | None = None
    if settings.ledger.is_configured:
        ledger = Web3LedgerClient(settings.ledger)
        executor = AllocationExecutor(ledger, settings.ledger.venues())
    else:
        logger.warning(
            "ledger_not_configured",
            note="Decision cycles will run; allocation endpoints are disabled.",
        )

    agent = StrategyAgent(
        settings=settings,
        aggregator=aggregator,
        classifier=classifier,
        trend_detector=trend_detector,
        selector=selector,
        store=store,
        executor=executor,
    )

    return {
        "session": session,
        "aggregator": aggregator,
        "backend": backend,
        "store": store,
        "ledger": ledger,
        "executor": executor,
        "agent": agent,
    }


async def _close_components(components: dict[str, Any]) -> None:
    """Release network and storage resources in reverse wiring order.

    Safe to call more than once; only the first call closes anything.
    """
    if components.get("closed"):
        return
    components["closed"] = True

    if components["ledger"] is not None:
        await components["ledger"].close()
    await components["backend"].close()
    await components["session"].close()


def _setup_signal_handlers(agent: StrategyAgent) -> None:
    """Register SIGINT/SIGTERM to stop the agent loop gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("yieldbot.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(agent.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage agent lifecycle within the FastAPI application.

    On startup: connects the store backend, exposes the agent on app.state,
    starts the strategy loop as a background task.

    On shutdown: stops the loop, cancels its task, releases resources.
    """
    logger = get_logger("yieldbot.main")
    components = app.state.components
    agent: StrategyAgent = components["agent"]

    app.state.agent = agent

    await components["backend"].connect()
    agent_task = asyncio.create_task(agent.start())

    logger.info("lifespan_started", store_backend=app.state.settings.store.backend)

    yield

    await agent.stop()
    agent_task.cancel()
    try:
        await agent_task
    except asyncio.CancelledError:
        pass

    await _close_components(components)
    logger.info("yield_strategy_agent_stopped")


async def run() -> None:
    """Run the yield strategy agent.

    When the API is enabled (API_ENABLED=true, the default) the agent runs
    inside uvicorn's event loop; otherwise it runs standalone.
    """
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("yieldbot.main")

    components = await _build_components(settings)

    if settings.api.enabled:
        from yieldbot.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info("starting_with_api", host=settings.api.host, port=settings.api.port)

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            # startup can fail before the lifespan runs (e.g. port in use)
            await _close_components(components)
    else:
        _setup_signal_handlers(components["agent"])
        logger.info(
            "starting_without_api",
            tiers=[t.value for t in settings.strategy.tiers],
            interval=settings.strategy.cycle_interval,
        )
        try:
            await components["backend"].connect()
            await components["agent"].start()
        finally:
            await _close_components(components)
            logger.info("yield_strategy_agent_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
