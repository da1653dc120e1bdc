"""
Ring Event Bridge Entry Point
=============================
Ring push feeds + polling sweep -> admission gate (exclusion, dedup) -> webhook
"""

import asyncio
import logging
import signal
import sys

from clients.ring import RingApiError, RingAuthError, RingClient
from config.settings import (
    DEBUG, POLLING_INTERVAL_SECONDS, RING_LOCATION_IDS, RING_REFRESH_TOKEN, STATUS_PORT,
    describe_config, validate_config,
)
from pipeline.deduplicator import EventDeduplicator
from pipeline.discovery import report_devices
from pipeline.dispatch import EventDispatcher
from pipeline.events import WebhookSink
from pipeline.gate import AdmissionGate
from pipeline.polling import PollingSweep
from pipeline.stats import event_stats
from pipeline.subscriptions import attach_location

logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("ring-bridge")

# httpx logs every request at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)


async def log_profile(client: RingClient):
    try:
        profile = await client.get_profile()
    except RingApiError as e:
        logger.warning(f"Could not retrieve account profile information: {e}")
        return
    logger.info(
        f"Ring account: {profile.get('email') or 'N/A'} "
        f"({profile.get('first_name') or ''} {profile.get('last_name') or ''}) "
        f"id={profile.get('user_id') or profile.get('id') or 'N/A'}"
    )


async def discover(client: RingClient, dispatcher: EventDispatcher) -> tuple[list, list]:
    """Find locations and attach listeners.

    Falls back to the raw device list when the account has no locations.
    Returns (locations, listeners).
    """
    try:
        locations = await client.get_locations()
    except RingApiError as e:
        logger.error(f"Error getting Ring locations: {e}")
        locations = []
    logger.info(f"Found {len(locations)} location(s)")

    if not locations:
        logger.warning("No Ring locations found. Attempting to work with devices directly.")
        devices = await client.get_devices_directly()
        if devices:
            await report_devices(devices, dispatcher)
        else:
            logger.warning("Could not retrieve any devices. Listening with no device coverage.")
        return [], []

    listeners = []
    for location in locations:
        listeners.append(await attach_location(location, dispatcher))
    logger.info("All Ring listeners set up")
    return locations, listeners


async def serve_status(deduplicator: EventDeduplicator) -> asyncio.Task:
    import uvicorn

    from app import create_app

    config = uvicorn.Config(
        create_app(event_stats, deduplicator),
        host="0.0.0.0",
        port=STATUS_PORT,
        log_level="debug" if DEBUG else "warning",
    )
    logger.info(f"Status app listening on port {STATUS_PORT}")
    return asyncio.create_task(uvicorn.Server(config).serve())


async def run_bridge(stop: asyncio.Event | None = None) -> int:
    """Run until ``stop`` is set (SIGINT/SIGTERM set it). Returns the exit code."""
    describe_config()
    errors = validate_config()
    if errors:
        for error in errors:
            logger.error(error)
        return 1

    client = RingClient(RING_REFRESH_TOKEN, location_ids=RING_LOCATION_IDS)
    try:
        await client.authenticate()
    except RingAuthError as e:
        logger.error(f"Failed to authenticate with Ring API: {e}")
        logger.error("Check RING_REFRESH_TOKEN and generate a new one if needed.")
        await client.aclose()
        return 1

    deduplicator = EventDeduplicator()
    gate = AdmissionGate(deduplicator)
    sink = WebhookSink()
    dispatcher = EventDispatcher(gate, sink)

    await log_profile(client)
    deduplicator.start()
    locations, listeners = await discover(client, dispatcher)

    sweep = PollingSweep(client, locations, dispatcher, interval=POLLING_INTERVAL_SECONDS)
    sweep.start()
    client.start_refresh()
    status_task = await serve_status(deduplicator) if STATUS_PORT else None

    if stop is None:
        stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            handled.append(sig)
        except (NotImplementedError, RuntimeError):
            pass  # not supported on this platform

    logger.info("Listening for Ring events...")
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down Ring event bridge...")
        for sig in handled:
            loop.remove_signal_handler(sig)
        sweep.stop()
        deduplicator.stop()
        if status_task is not None:
            status_task.cancel()
        await client.aclose()
        await sink.aclose()
        logger.info(f"Final event stats: {event_stats.snapshot()}")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(run_bridge()))
    except KeyboardInterrupt:
        sys.exit(0)
