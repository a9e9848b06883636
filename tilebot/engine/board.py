"""Scrabble board: 15x15 grid with premium squares, placement rules and scoring."""

from __future__ import annotations

import string
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..errors import IllegalPlacement
from ..schemas import CellState, PlacedTile
from .bag import LETTER_VALUES, RACK_SIZE

SIZE = 15
CENTER: Tuple[int, int] = (7, 7)
BINGO_BONUS = 50

ACROSS = 'across'
DOWN = 'down'


class Modifier(str, Enum):
    NONE = 'none'
    DOUBLE_LETTER = 'double_letter'
    TRIPLE_LETTER = 'triple_letter'
    DOUBLE_WORD = 'double_word'
    TRIPLE_WORD = 'triple_word'
    START = 'start'


LETTER_MULTIPLIERS: Dict[Modifier, int] = {
    Modifier.DOUBLE_LETTER: 2,
    Modifier.TRIPLE_LETTER: 3,
}

# The start square doubles the first word
WORD_MULTIPLIERS: Dict[Modifier, int] = {
    Modifier.DOUBLE_WORD: 2,
    Modifier.TRIPLE_WORD: 3,
    Modifier.START: 2,
}

_TRIPLE_WORD = [
    (0, 0), (0, 7), (0, 14),
    (7, 0), (7, 14),
    (14, 0), (14, 7), (14, 14),
]

_DOUBLE_WORD = [
    (1, 1), (2, 2), (3, 3), (4, 4),
    (1, 13), (2, 12), (3, 11), (4, 10),
    (10, 4), (11, 3), (12, 2), (13, 1),
    (10, 10), (11, 11), (12, 12), (13, 13),
]

_TRIPLE_LETTER = [
    (1, 5), (1, 9),
    (5, 1), (5, 5), (5, 9), (5, 13),
    (9, 1), (9, 5), (9, 9), (9, 13),
    (13, 5), (13, 9),
]

_DOUBLE_LETTER = [
    (0, 3), (0, 11),
    (2, 6), (2, 8),
    (3, 0), (3, 7), (3, 14),
    (6, 2), (6, 6), (6, 8), (6, 12),
    (7, 3), (7, 11),
    (8, 2), (8, 6), (8, 8), (8, 12),
    (11, 0), (11, 7), (11, 14),
    (12, 6), (12, 8),
    (14, 3), (14, 11),
]

LAYOUT: Dict[Tuple[int, int], Modifier] = {CENTER: Modifier.START}
for _pos in _TRIPLE_WORD:
    LAYOUT[_pos] = Modifier.TRIPLE_WORD
for _pos in _DOUBLE_WORD:
    LAYOUT[_pos] = Modifier.DOUBLE_WORD
for _pos in _TRIPLE_LETTER:
    LAYOUT[_pos] = Modifier.TRIPLE_LETTER
for _pos in _DOUBLE_LETTER:
    LAYOUT[_pos] = Modifier.DOUBLE_LETTER


@dataclass
class Cell:
    modifier: Modifier = Modifier.NONE
    letter: Optional[str] = None
    is_blank: bool = False

    @property
    def empty(self) -> bool:
        return self.letter is None


@dataclass(frozen=True)
class WordTile:
    row: int
    col: int
    letter: str
    is_blank: bool
    is_new: bool


@dataclass(frozen=True)
class FormedWord:
    tiles: Tuple[WordTile, ...]

    @property
    def text(self) -> str:
        return ''.join(t.letter for t in self.tiles)

    @property
    def positions(self) -> List[Tuple[int, int]]:
        return [(t.row, t.col) for t in self.tiles]

    def __str__(self) -> str:
        return self.text


def _step(direction: str) -> Tuple[int, int]:
    return (0, 1) if direction == ACROSS else (1, 0)


def _in_bounds(row: int, col: int) -> bool:
    return 0 <= row < SIZE and 0 <= col < SIZE


class Board:
    """Fixed 15x15 grid. Modifiers never change; letters only come and go
    through :meth:`apply` and :meth:`revert`."""

    def __init__(self, grid: Optional[List[List[Cell]]] = None):
        self.grid: List[List[Cell]] = grid or [
            [Cell(LAYOUT.get((r, c), Modifier.NONE)) for c in range(SIZE)]
            for r in range(SIZE)
        ]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self.grid == other.grid

    def cell(self, row: int, col: int) -> Cell:
        return self.grid[row][col]

    @property
    def is_empty(self) -> bool:
        return self.tile_count() == 0

    def tile_count(self) -> int:
        return sum(1 for row in self.grid for cell in row if not cell.empty)

    # ------------------------------------------------------------------
    # Placement rules
    # ------------------------------------------------------------------

    def validate_placement(self, tiles: Sequence[PlacedTile]) -> str:
        """Check a candidate placement and return its direction.

        Raises :class:`IllegalPlacement` naming the first rule broken.
        """
        if not tiles:
            raise IllegalPlacement('empty', 'Place at least one tile')
        if len(tiles) > RACK_SIZE:
            raise IllegalPlacement('length', f'At most {RACK_SIZE} tiles can be played in one turn')

        seen: Set[Tuple[int, int]] = set()
        for tile in tiles:
            pos = (tile.row, tile.col)
            if not _in_bounds(*pos):
                raise IllegalPlacement('bounds', f'({tile.row}, {tile.col}) is off the board')
            if pos in seen:
                raise IllegalPlacement('duplicate', f'({tile.row}, {tile.col}) is used twice')
            seen.add(pos)
            if len(tile.letter) != 1 or tile.letter.upper() not in string.ascii_uppercase:
                raise IllegalPlacement('letter', f'{tile.letter!r} is not a letter')
            if not self.grid[tile.row][tile.col].empty:
                raise IllegalPlacement('occupied', f'({tile.row}, {tile.col}) already has a tile')

        rows = {t.row for t in tiles}
        cols = {t.col for t in tiles}
        if len(rows) == 1:
            direction = ACROSS
            row = tiles[0].row
            line = [(row, c) for c in range(min(cols), max(cols) + 1)]
        elif len(cols) == 1:
            direction = DOWN
            col = tiles[0].col
            line = [(r, col) for r in range(min(rows), max(rows) + 1)]
        else:
            raise IllegalPlacement('line', 'Tiles must be in a single row or column')

        for pos in line:
            if pos not in seen and self.grid[pos[0]][pos[1]].empty:
                raise IllegalPlacement('gap', 'Tiles must form one word without gaps')

        if self.is_empty:
            if CENTER not in seen:
                raise IllegalPlacement('start', 'The first word must cover the start square')
            if len(tiles) < 2:
                raise IllegalPlacement('length', 'The first word must be at least two letters')
        elif not any(self._touches_tile(r, c) for r, c in seen):
            raise IllegalPlacement('connected', 'Tiles must connect to a word already on the board')

        return direction

    def _touches_tile(self, row: int, col: int) -> bool:
        for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            r, c = row + dr, col + dc
            if _in_bounds(r, c) and not self.grid[r][c].empty:
                return True
        return False

    # ------------------------------------------------------------------
    # Words
    # ------------------------------------------------------------------

    def extract_words(self, tiles: Sequence[PlacedTile]) -> List[FormedWord]:
        """Every word of two or more letters formed by a validated placement."""
        placed = {(t.row, t.col): t for t in tiles}
        direction = DOWN if len({t.col for t in tiles}) == 1 and len(tiles) > 1 else ACROSS
        cross = DOWN if direction == ACROSS else ACROSS

        words: List[FormedWord] = []
        first = tiles[0]
        main = self._word_through(first.row, first.col, direction, placed)
        if len(main.tiles) >= 2:
            words.append(main)
        for tile in sorted(tiles, key=lambda t: (t.row, t.col)):
            word = self._word_through(tile.row, tile.col, cross, placed)
            if len(word.tiles) >= 2:
                words.append(word)
        return words

    def _tile_at(self, row: int, col: int, placed: Dict[Tuple[int, int], PlacedTile]) -> Optional[WordTile]:
        if not _in_bounds(row, col):
            return None
        tile = placed.get((row, col))
        if tile is not None:
            return WordTile(row, col, tile.letter.upper(), tile.isBlank, True)
        cell = self.grid[row][col]
        if cell.empty:
            return None
        return WordTile(row, col, cell.letter, cell.is_blank, False)

    def _word_through(self, row: int, col: int, direction: str,
                      placed: Dict[Tuple[int, int], PlacedTile]) -> FormedWord:
        dr, dc = _step(direction)
        while self._tile_at(row - dr, col - dc, placed) is not None:
            row, col = row - dr, col - dc
        found: List[WordTile] = []
        tile = self._tile_at(row, col, placed)
        while tile is not None:
            found.append(tile)
            row, col = row + dr, col + dc
            tile = self._tile_at(row, col, placed)
        return FormedWord(tuple(found))

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self, words: Iterable[FormedWord], tiles_played: int, bingo_bonus: int = BINGO_BONUS) -> int:
        """Score newly formed words.

        Premium squares count only under tiles placed this turn: letter
        multipliers first, then word multipliers per word. Blanks score 0.
        """
        total = 0
        for word in words:
            word_score = 0
            word_mult = 1
            for tile in word.tiles:
                value = 0 if tile.is_blank else LETTER_VALUES.get(tile.letter, 0)
                if tile.is_new:
                    modifier = self.grid[tile.row][tile.col].modifier
                    value *= LETTER_MULTIPLIERS.get(modifier, 1)
                    word_mult *= WORD_MULTIPLIERS.get(modifier, 1)
                word_score += value
            total += word_score * word_mult
        if tiles_played == RACK_SIZE:
            total += bingo_bonus
        return total

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(self, tiles: Iterable[PlacedTile]) -> None:
        for tile in tiles:
            cell = self.grid[tile.row][tile.col]
            cell.letter = tile.letter.upper()
            cell.is_blank = tile.isBlank

    def revert(self, tiles: Iterable[PlacedTile]) -> None:
        for tile in tiles:
            cell = self.grid[tile.row][tile.col]
            cell.letter = None
            cell.is_blank = False

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def render(self) -> str:
        """Plain-text grid: letters upper-case, blanks lower-case, '.' for empty."""
        lines = []
        for row in self.grid:
            chars = []
            for cell in row:
                if cell.empty:
                    chars.append('.')
                else:
                    chars.append(cell.letter.lower() if cell.is_blank else cell.letter)
            lines.append(' '.join(chars))
        return '\n'.join(lines)

    def to_state(self) -> List[List[CellState]]:
        return [
            [CellState(letter=cell.letter, isBlank=cell.is_blank, modifier=cell.modifier.value) for cell in row]
            for row in self.grid
        ]

    @classmethod
    def from_state(cls, cells: List[List[CellState]]) -> "Board":
        board = cls()
        for r, row in enumerate(cells):
            for c, state in enumerate(row):
                cell = board.grid[r][c]
                cell.letter = state.letter
                cell.is_blank = state.isBlank
        return board
