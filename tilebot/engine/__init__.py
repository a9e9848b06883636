"""Game engine: tile bag, racks, board and the per-channel session."""

from .bag import BLANK, RACK_SIZE, TILE_DISTRIBUTION, TOTAL_TILES, TileBag
from .board import Board, Modifier
from .rack import Player, Rack
from .session import GameSession, Status, TurnResult

__all__ = [
    "BLANK",
    "RACK_SIZE",
    "TILE_DISTRIBUTION",
    "TOTAL_TILES",
    "TileBag",
    "Board",
    "Modifier",
    "Player",
    "Rack",
    "GameSession",
    "Status",
    "TurnResult",
]
