"""Application entry point — watch a database's changes feed.

Settings come from ``AppConfig`` (``COUCHFEED_*`` environment variables and an
optional YAML file); each change event is logged until interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from couchfeed.changes.events import ChangeEvent
from couchfeed.client.client import CouchClient
from couchfeed.config.settings import AppConfig
from couchfeed.metrics.collector import NotifierMetrics

logger = logging.getLogger(__name__)


def log_event(event: ChangeEvent) -> None:
    """Log one change event."""
    if event.is_error:
        logger.warning("change feed error at since=%s: %s", event.sequence, event.error)
    else:
        logger.info("%s %s rev=%s seq=%s", event.type, event.doc_id, event.revision, event.sequence)


async def watch(config: AppConfig, *, stop: asyncio.Event | None = None) -> None:
    """Run change notification on the configured database until *stop* is set."""
    metrics = NotifierMetrics() if config.metrics.enabled else None
    client = CouchClient.from_config(config, metrics=metrics)
    stop = stop or asyncio.Event()
    await client.connect()
    try:
        client.change_notification.add_listener(log_event)
        client.start_change_notification(config.changes.to_parameters())
        logger.info("Watching %s on %s", client.change_notification_db_name, client.context.base_url)
        await stop.wait()
    finally:
        await client.close()


def main() -> None:
    """Start watching the configured database."""
    config = AppConfig()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(watch(config))


if __name__ == "__main__":
    main()
