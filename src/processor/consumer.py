"""
pgqueuer consumer feeding broker messages into the dispatcher.

Each subscribed topic is a pgqueuer entrypoint; the job payload is the JSON
message envelope. A job whose handler raises is left to pgqueuer's retry
handling, except for duplicates, which mean the event was already applied.
"""

import asyncio
from typing import Optional

import asyncpg
from pgqueuer import PgQueuer, Queries
from pgqueuer.db import AsyncpgDriver
from pgqueuer.models import Job

from core.errors import DuplicateRecordError, EventValidationError
from core.log import get_logger
from core.messages import MessageEnvelope

from .constants import CONSUMER_RESTART_DELAY
from .dispatcher import Dispatcher

logger = get_logger(__name__)


class LedgerConsumer:
    def __init__(self, dispatcher: Dispatcher, queue_database_url: str):
        self.dispatcher = dispatcher
        self.queue_database_url = queue_database_url
        self._running = False
        self._pgq: Optional[PgQueuer] = None

    async def handle_job(self, topic: str, payload: Optional[bytes]) -> None:
        """Dispatch one job payload.

        Raises every error except ``DuplicateRecordError``, which is logged
        and treated as success.
        """
        if payload is None:
            raise EventValidationError(f"Empty job on topic {topic}")

        try:
            await self.dispatcher.dispatch(payload)
        except DuplicateRecordError as exc:
            logger.info(
                "Message on %s was already applied (%s), acknowledging", topic, exc
            )

    async def _consume(self) -> None:
        conn = await asyncpg.connect(dsn=self.queue_database_url)
        try:
            driver = AsyncpgDriver(conn)
            pgq = PgQueuer(driver)
            self._pgq = pgq

            for topic in self.dispatcher.topics.subscribed:
                self._register(pgq, topic)

            logger.info(
                "Ledger consumer listening on %s",
                ", ".join(self.dispatcher.topics.subscribed),
            )
            await pgq.run()
        finally:
            self._pgq = None
            await conn.close()

    def _register(self, pgq: PgQueuer, topic: str) -> None:
        @pgq.entrypoint(topic)
        async def process_message(job: Job) -> None:
            try:
                await self.handle_job(topic, job.payload)
            except Exception as e:
                logger.error("Failed to process job %s on %s: %s", job.id, topic, e)
                # Re-raise to let pgqueue handle retry
                raise

    async def run(self) -> None:
        """Consume until ``stop`` is called, reconnecting after failures."""
        self._running = True
        while self._running:
            try:
                await self._consume()
            except asyncio.CancelledError:
                logger.info("Ledger consumer cancelled")
                raise
            except Exception as e:
                if not self._running:
                    break
                logger.error(
                    "Ledger consumer error: %s; restarting in %ss",
                    e,
                    CONSUMER_RESTART_DELAY,
                )
                await asyncio.sleep(CONSUMER_RESTART_DELAY)

    def stop(self) -> None:
        self._running = False
        if self._pgq is not None:
            self._pgq.shutdown.set()


async def enqueue_message(queue_database_url: str, envelope: MessageEnvelope) -> None:
    """Publish an envelope onto the queue named after its topic."""
    conn = await asyncpg.connect(dsn=queue_database_url)
    try:
        driver = AsyncpgDriver(conn)
        q = Queries(driver)
        await q.enqueue([envelope.topic], [envelope.to_bytes()], [0])
        logger.info("Queued message for topic %s", envelope.topic)
    finally:
        await conn.close()
