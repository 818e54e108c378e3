"""Placement of contestants when a round's review phase ends."""

from dataclasses import dataclass
from typing import Iterable, List, Protocol


class Scored(Protocol):
    coder_id: int

    @property
    def point(self) -> float: ...


@dataclass(frozen=True)
class Placement:
    coder_id: int
    point: float
    placed: int


def rank_results(results: Iterable[Scored]) -> List[Placement]:
    """Assign tied placements by descending point.

    Equal points share a placement and the next distinct point takes its
    absolute position, so ``[50, 50, 50, 30, 10]`` places ``[1, 1, 1, 4, 5]``.
    Ties keep the order of ``coder_id`` to make the output deterministic.
    """
    ordered = sorted(results, key=lambda result: (-result.point, result.coder_id))

    placements: List[Placement] = []
    for index, result in enumerate(ordered):
        if index == 0 or result.point != placements[-1].point:
            placed = index + 1
        else:
            placed = placements[-1].placed
        placements.append(
            Placement(coder_id=result.coder_id, point=result.point, placed=placed)
        )
    return placements
