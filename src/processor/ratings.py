from dataclasses import dataclass
from typing import Protocol

from core.constants import DEFAULT_RATING, DEFAULT_VOLATILITY, RatingType

from .store import LedgerSession


@dataclass(frozen=True)
class Rating:
    rating: int
    vol: int


DEFAULT_MM_RATING = Rating(rating=DEFAULT_RATING, vol=DEFAULT_VOLATILITY)


class RatingSource(Protocol):
    """Supplies the rating a contestant held before the round was placed."""

    async def get_rating(self, ledger: LedgerSession, coder_id: int) -> Rating:
        """Return the contestant's rating, or a default pair when unrated."""


class LedgerRatingSource:
    """Reads Marathon Match ratings from the ledger's algo_rating table."""

    def __init__(self, default: Rating = DEFAULT_MM_RATING):
        self.default = default

    async def get_rating(self, ledger: LedgerSession, coder_id: int) -> Rating:
        row = await ledger.get_rating(coder_id, RatingType.MARATHON_MATCH)
        if row is None:
            return self.default
        return Rating(rating=row.rating, vol=row.vol)
