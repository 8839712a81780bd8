"""
Ingestion daemon: one supervised Kafka consumer loop per telemetry topic.

Runs five concurrent asyncio tasks (suburb consumption, consumer
consumption, generator production, spot price, selling price). Each task
reads its topic sequentially in batches via ``getmany`` and commits offsets
only after the whole batch was handled. A fatal error (malformed message or
unexpected write failure) aborts the batch without committing; the
supervisor logs it and restarts that topic's consumer after a delay without
affecting the other topics. A poison message therefore holds its topic at
the same offset until an operator moves the consumer group past it.

Graceful shutdown on SIGTERM/SIGINT sets a shared asyncio.Event; every loop
finishes its current batch, stops its consumer and exits. Structured JSON
logging is used for all events.

CHANGELOG:
- 2026-04-11: Supervise each topic independently with restart delay; tag log lines with the topic (STORY-010)
- 2026-04-04: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from aiokafka import AIOKafkaConsumer

from powertrack.services.ingestion import (
    TELEMETRY_KINDS,
    IngestionHandler,
    TelemetryKind,
)

if TYPE_CHECKING:
    from powertrack.config import Settings

logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[TelemetryKind], AIOKafkaConsumer]


# ---------------------------------------------------------------------------
# Structured JSON logging
# ---------------------------------------------------------------------------


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line. A ``topic`` passed via ``extra`` is kept."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "severity": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        topic = getattr(record, "topic", None)
        if topic is not None:
            entry["topic"] = topic
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level: int = logging.INFO) -> None:
    """Route every logger through a single stderr handler emitting JSON."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLogFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def log_config_summary(settings: Settings) -> None:
    """Log a config summary at startup, excluding the database URL."""
    logger.info(
        "Ingestion daemon starting with config: "
        "kafka_bootstrap_servers=%s, kafka_client_id=%s, "
        "consumer_restart_delay_s=%s, topics=%s",
        settings.kafka_bootstrap_servers,
        settings.kafka_client_id,
        settings.consumer_restart_delay_s,
        [kind.topic for kind in TELEMETRY_KINDS.values()],
    )


def make_consumer_factory(settings: Settings) -> ConsumerFactory:
    """Return a factory building an unstarted consumer for a kind."""

    def _factory(kind: TelemetryKind) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            kind.topic,
            bootstrap_servers=settings.kafka_broker_list,
            client_id=settings.kafka_client_id,
            group_id=kind.group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        )

    return _factory


# ---------------------------------------------------------------------------
# Single-batch function (easily testable)
# ---------------------------------------------------------------------------


async def consume_batch(
    consumer: AIOKafkaConsumer,
    handler: IngestionHandler,
    *,
    timeout_ms: int = 1000,
    max_records: int = 500,
) -> int:
    """Fetch and handle one batch, then commit its offsets.

    Exceptions from the handler propagate and the batch is not committed.

    Returns:
        int: Number of messages handled.
    """
    batches = await consumer.getmany(timeout_ms=timeout_ms, max_records=max_records)
    handled = 0
    for messages in batches.values():
        for message in messages:
            await handler.handle(message.key, message.value, message.timestamp)
            handled += 1
    if handled:
        await consumer.commit()
        logger.debug("Committed %d message(s) on %s", handled, handler.kind.topic)
    return handled


# ---------------------------------------------------------------------------
# Loop runners
# ---------------------------------------------------------------------------


async def _consume_loop(
    *,
    consumer: AIOKafkaConsumer,
    handler: IngestionHandler,
    shutdown_event: asyncio.Event,
) -> None:
    """Consume batches until shutdown_event is set."""
    while not shutdown_event.is_set():
        await consume_batch(consumer, handler)


async def supervise_topic(
    *,
    handler: IngestionHandler,
    consumer_factory: ConsumerFactory,
    shutdown_event: asyncio.Event,
    restart_delay_s: float,
) -> None:
    """Run one topic's consumer, restarting it after failures.

    A restarted consumer resumes from the last committed offset, so a
    malformed (poison) message is read again on every restart and the topic
    stalls at that offset, retrying every ``restart_delay_s``. Other topics
    keep running. An operator must fix the producer and skip the record,
    for example by moving the group offset past it.

    Args:
        handler: Handler for the topic's telemetry kind.
        consumer_factory: Builds a fresh consumer for each (re)start.
        shutdown_event: Event to signal graceful shutdown.
        restart_delay_s: Seconds to wait before restarting after a failure.
    """
    topic = handler.kind.topic
    while not shutdown_event.is_set():
        consumer = consumer_factory(handler.kind)
        try:
            await consumer.start()
            logger.info(
                "Consumer started for topic %s (group=%s)",
                topic,
                handler.kind.group_id,
                extra={"topic": topic},
            )
            await _consume_loop(
                consumer=consumer,
                handler=handler,
                shutdown_event=shutdown_event,
            )
        except Exception:
            logger.error(
                "Consumer for topic %s failed, restarting in %ss",
                topic,
                restart_delay_s,
                exc_info=True,
                extra={"topic": topic},
            )
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=restart_delay_s,
                )
        finally:
            await consumer.stop()
    logger.info("Consumer for topic %s stopped", topic, extra={"topic": topic})


async def run_consumers(
    *,
    handlers: list[IngestionHandler],
    consumer_factory: ConsumerFactory,
    shutdown_event: asyncio.Event,
    restart_delay_s: float,
) -> None:
    """Run one supervised consumer per handler until shutdown."""
    logger.info("Starting %d topic consumers", len(handlers))
    await asyncio.gather(
        *(
            supervise_topic(
                handler=handler,
                consumer_factory=consumer_factory,
                shutdown_event=shutdown_event,
                restart_delay_s=restart_delay_s,
            )
            for handler in handlers
        )
    )
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build handlers, run consumers.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    configure_logging()

    from powertrack.config import get_settings
    from powertrack.db.session import dispose_engine, init_engine

    settings = get_settings()
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    session_factory = init_engine()
    handlers = [
        IngestionHandler(kind, session_factory) for kind in TELEMETRY_KINDS.values()
    ]
    try:
        await run_consumers(
            handlers=handlers,
            consumer_factory=make_consumer_factory(settings),
            shutdown_event=shutdown_event,
            restart_delay_s=settings.consumer_restart_delay_s,
        )
    finally:
        await dispose_engine()


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the ingestion daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
