"""
Main entry point for the ledger processor.
"""

import asyncio
import signal
import sys

from core.log import configure_logging, get_logger

from .allocator import AllocatorRegistry
from .config import ProcessorConfig
from .constants import ALLOCATOR_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_SIZE
from .consumer import LedgerConsumer
from .dispatcher import Dispatcher, Topics
from .service import EventProcessor
from .store import LedgerStore
from .submissions import SubmissionApiClient

logger = get_logger(__name__)


class ProcessorService:
    """Service wrapper for the ledger consumer."""

    def __init__(self):
        self.config = ProcessorConfig()
        configure_logging(self.config.log_file)
        self.consumer = None
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def run(self):
        """Run the processor service."""
        settings = self.config.settings
        store = LedgerStore.from_url(
            settings.database_url,
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
        allocator_store = LedgerStore.from_url(
            settings.database_url,
            pool_size=ALLOCATOR_POOL_SIZE,
            max_overflow=0,
            pool_pre_ping=True,
        )
        submission_client = SubmissionApiClient.from_settings(settings)

        try:
            logger.info("Starting ledger processor")

            ignored_review_type_ids = await submission_client.fetch_ignored_review_type_ids(
                settings.ignored_review_types
            )
            allocators = AllocatorRegistry(allocator_store)
            processor = EventProcessor(
                store,
                allocators.get(settings.id_seq_component_state),
                submission_client,
                ignored_review_type_ids=ignored_review_type_ids,
                replace_existing_placements=settings.replace_existing_placements,
            )
            dispatcher = Dispatcher(processor, Topics.from_settings(settings))
            self.consumer = LedgerConsumer(dispatcher, settings.queue_database_url)

            consumer_task = asyncio.create_task(self.consumer.run())

            logger.info("Ledger processor is running. Press Ctrl+C to stop.")
            await self._shutdown_event.wait()

            logger.info("Shutting down ledger processor...")
            self.consumer.stop()
            consumer_task.cancel()
            try:
                await consumer_task
            except asyncio.CancelledError:
                pass

            logger.info("Ledger processor stopped")

        except Exception as e:
            logger.error(f"Fatal error in ledger processor: {e}")
            sys.exit(1)
        finally:
            await submission_client.close()
            await allocator_store.dispose()
            await store.dispose()


async def main():
    """Main entry point."""
    service = ProcessorService()
    service.setup_signal_handlers()
    await service.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unhandled exception: {e}")
        sys.exit(1)
