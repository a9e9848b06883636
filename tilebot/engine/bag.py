"""Tile distribution, letter values and the per-game tile bag."""

from __future__ import annotations

import random
from collections import Counter
from typing import Dict, Iterable, List, Optional

from ..errors import InvalidExchange, TileNotHeld

BLANK = '?'
RACK_SIZE = 7

# Standard 100-tile English distribution
TILE_DISTRIBUTION: Dict[str, int] = {
    'E': 12, 'A': 9, 'I': 9, 'O': 8, 'N': 6, 'R': 6, 'T': 6,
    'L': 4, 'S': 4, 'U': 4, 'D': 4, 'G': 3,
    'B': 2, 'C': 2, 'M': 2, 'P': 2, 'F': 2, 'H': 2, 'V': 2, 'W': 2, 'Y': 2,
    'K': 1, 'J': 1, 'X': 1, 'Q': 1, 'Z': 1,
    BLANK: 2,
}

TOTAL_TILES = sum(TILE_DISTRIBUTION.values())

LETTER_VALUES: Dict[str, int] = {
    'A': 1, 'B': 3, 'C': 3, 'D': 2, 'E': 1, 'F': 4, 'G': 2, 'H': 4,
    'I': 1, 'J': 8, 'K': 5, 'L': 1, 'M': 3, 'N': 1, 'O': 1, 'P': 3,
    'Q': 10, 'R': 1, 'S': 1, 'T': 1, 'U': 1, 'V': 4, 'W': 4, 'X': 8,
    'Y': 4, 'Z': 10, BLANK: 0,
}


def full_tile_set() -> List[str]:
    """Return all 100 tiles in distribution order (unshuffled)."""
    tiles: List[str] = []
    for tile, count in TILE_DISTRIBUTION.items():
        tiles.extend([tile] * count)
    return tiles


def tile_value(tile: str) -> int:
    """Point value of a rack tile. Blanks are worth nothing."""
    return LETTER_VALUES.get(tile.upper(), 0) if tile != BLANK else 0


def rack_value(tiles: Iterable[str]) -> int:
    return sum(tile_value(t) for t in tiles)


def missing_tiles(wanted: Iterable[str], held: Iterable[str]) -> List[str]:
    """Tiles in ``wanted`` that ``held`` cannot cover, counting duplicates."""
    shortfall = Counter(wanted) - Counter(held)
    return sorted(shortfall.elements())


class TileBag:
    """The pool of undrawn tiles for one game.

    Draws pick a uniformly random index and swap-remove it, so the result does
    not depend on the order tiles were put in. The random source is injected so
    tests can pass a seeded ``random.Random``.
    """

    def __init__(self, tiles: Optional[Iterable[str]] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.tiles: List[str] = list(tiles or [])

    @classmethod
    def initialize(cls, rng: Optional[random.Random] = None) -> "TileBag":
        bag = cls(full_tile_set(), rng)
        # random.shuffle is Fisher-Yates: every permutation equally likely
        bag.rng.shuffle(bag.tiles)
        return bag

    def remaining(self) -> int:
        return len(self.tiles)

    def __len__(self) -> int:
        return len(self.tiles)

    def draw(self, n: int) -> List[str]:
        """Remove and return up to ``n`` tiles; fewer when the bag runs low."""
        drawn: List[str] = []
        for _ in range(min(max(n, 0), len(self.tiles))):
            idx = self.rng.randrange(len(self.tiles))
            self.tiles[idx], self.tiles[-1] = self.tiles[-1], self.tiles[idx]
            drawn.append(self.tiles.pop())
        return drawn

    def put_back(self, tiles: Iterable[str]) -> None:
        self.tiles.extend(tiles)
        self.rng.shuffle(self.tiles)

    def withdraw(self, tiles: Iterable[str]) -> List[str]:
        """Remove an exact multiset of tiles from the bag."""
        wanted = list(tiles)
        missing = missing_tiles(wanted, self.tiles)
        if missing:
            raise TileNotHeld(missing)
        for tile in wanted:
            self.tiles.remove(tile)
        return wanted

    def exchange(self, tiles: Iterable[str]) -> List[str]:
        """Swap ``tiles`` for the same number of fresh tiles from the bag.

        Replacements are drawn before the returned tiles go in, so a player
        never gets their own tiles straight back.
        """
        returned = list(tiles)
        if self.remaining() < len(returned):
            raise InvalidExchange(
                f'Only {self.remaining()} tiles left in the bag',
                remaining=self.remaining(), requested=len(returned),
            )
        drawn = self.draw(len(returned))
        self.put_back(returned)
        return drawn
