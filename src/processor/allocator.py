"""
Block-allocated identifiers for ledger rows.

Each sequence name has a durable row in ``id_sequences`` holding the start of
the next unreserved block. An allocator reserves a whole block in one short
transaction and then hands identifiers out of memory until the block is used
up. Identifiers left in a block when the process stops are never handed out
again, so sequences may have gaps but never repeat.
"""

import asyncio
from typing import Dict

from core.constants import DEFAULT_SEQUENCE_BLOCK_SIZE, DEFAULT_SEQUENCE_BLOCK_START
from core.errors import DuplicateRecordError, StoreUnavailableError
from core.log import get_logger

from .store import LedgerStore

logger = get_logger(__name__)


class IdentifierAllocator:
    """Hands out strictly increasing identifiers for one sequence name.

    There must be exactly one instance per sequence name per process; use
    ``AllocatorRegistry`` to share them. All access to the in-memory cursor
    and to the durable block row is serialized by an ``asyncio.Lock``.

    A refill runs while the caller may still hold a connection for its own
    transaction, so ``store`` should own an engine separate from the one
    event handlers use.
    """

    def __init__(
        self,
        store: LedgerStore,
        sequence_name: str,
        *,
        default_block_start: int = DEFAULT_SEQUENCE_BLOCK_START,
        default_block_size: int = DEFAULT_SEQUENCE_BLOCK_SIZE,
    ):
        self.store = store
        self.sequence_name = sequence_name
        self.default_block_start = default_block_start
        self.default_block_size = default_block_size

        self._lock = asyncio.Lock()
        self._current = 0
        self._remaining = 0

    @property
    def remaining(self) -> int:
        return self._remaining

    async def next_id(self) -> int:
        """Return the next identifier, reserving a new block when needed."""
        async with self._lock:
            remaining = self._remaining - 1
            if remaining <= 0:
                block_start, block_size = await self._reserve_block()
                # Only touch the cursor once the reservation is durable
                self._current = block_start - 1
                self._remaining = block_size
            else:
                self._remaining = remaining

            self._current += 1
            logger.debug(
                "Allocated id %s from %s (%s left in block)",
                self._current,
                self.sequence_name,
                self._remaining - 1,
            )
            return self._current

    async def _reserve_block(self) -> tuple[int, int]:
        try:
            return await self._advance_sequence()
        except DuplicateRecordError:
            # Another process created the sequence row between our read and
            # insert; the retry finds it.
            logger.debug(
                "Sequence %s created concurrently, retrying reservation",
                self.sequence_name,
            )

        try:
            return await self._advance_sequence()
        except DuplicateRecordError as exc:
            raise StoreUnavailableError(
                f"Could not create sequence {self.sequence_name}"
            ) from exc

    async def _advance_sequence(self) -> tuple[int, int]:
        async with self.store.transaction() as ledger:
            sequence = await ledger.get_sequence(self.sequence_name)
            if sequence is None:
                logger.info(
                    "Creating id sequence %s starting at %s",
                    self.sequence_name,
                    self.default_block_start,
                )
                sequence = await ledger.create_sequence(
                    self.sequence_name,
                    self.default_block_start,
                    self.default_block_size,
                )

            block_start = sequence.next_block_start
            block_size = sequence.block_size
            if block_size < 1:
                raise StoreUnavailableError(
                    f"Sequence {self.sequence_name} has invalid block size {block_size}"
                )
            await ledger.set_sequence_start(
                self.sequence_name, block_start + block_size
            )

        logger.debug(
            "Reserved block [%s, %s) for %s",
            block_start,
            block_start + block_size,
            self.sequence_name,
        )
        return block_start, block_size


class AllocatorRegistry:
    """One allocator per sequence name, created on first use."""

    def __init__(self, store: LedgerStore, **allocator_kwargs):
        self.store = store
        self._allocator_kwargs = allocator_kwargs
        self._allocators: Dict[str, IdentifierAllocator] = {}

    def get(self, sequence_name: str) -> IdentifierAllocator:
        allocator = self._allocators.get(sequence_name)
        if allocator is None:
            allocator = IdentifierAllocator(
                self.store, sequence_name, **self._allocator_kwargs
            )
            self._allocators[sequence_name] = allocator
        return allocator
