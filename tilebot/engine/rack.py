from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..errors import InvalidPermutation, TileNotHeld
from .bag import RACK_SIZE, TileBag, missing_tiles, rack_value


class Rack:
    """A player's held tiles, in the order they chose to display them."""

    def __init__(self, tiles: Optional[Iterable[str]] = None, size: int = RACK_SIZE):
        self.size = size
        self.tiles: List[str] = list(tiles or [])

    def __len__(self) -> int:
        return len(self.tiles)

    def __iter__(self):
        return iter(self.tiles)

    def __repr__(self) -> str:
        return f"Rack({' '.join(self.tiles)!r})"

    @property
    def value(self) -> int:
        return rack_value(self.tiles)

    def refill(self, bag: TileBag) -> List[str]:
        """Draw from ``bag`` until the rack is full or the bag is empty."""
        drawn = bag.draw(self.size - len(self.tiles))
        self.tiles.extend(drawn)
        return drawn

    def remove(self, tiles: Iterable[str]) -> List[str]:
        """Take an exact multiset of tiles off the rack, all or nothing."""
        wanted = list(tiles)
        missing = missing_tiles(wanted, self.tiles)
        if missing:
            raise TileNotHeld(missing)
        for tile in wanted:
            self.tiles.remove(tile)
        return wanted

    def add(self, tiles: Iterable[str]) -> None:
        self.tiles.extend(tiles)

    def reorder(self, new_order: Iterable[str]) -> None:
        order = [t.upper() for t in new_order]
        if len(order) != len(self.tiles) or Counter(order) != Counter(self.tiles):
            raise InvalidPermutation(
                'New order must use exactly the tiles on your rack',
                rack=list(self.tiles), order=order,
            )
        self.tiles = order


@dataclass
class Player:
    id: str
    name: str = ''
    rack: Rack = field(default_factory=Rack)
    score: int = 0
    # turns still to be forfeited after losing a challenge
    skip_turns: int = 0
