from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

Modifier = Literal['none', 'double_letter', 'triple_letter', 'double_word', 'triple_word', 'start']
GameStatus = Literal['awaiting_start', 'in_progress', 'finished']
MoveKind = Literal['play', 'pass', 'exchange']

class PlacedTile(BaseModel):
    row: int
    col: int
    # For a blank this is the letter the player designates it as
    letter: str
    isBlank: bool = False

class CellState(BaseModel):
    letter: Optional[str] = None
    isBlank: bool = False
    modifier: Modifier = 'none'

class PlayerState(BaseModel):
    id: str
    name: str = ''
    score: int = 0
    rack: List[str] = []
    skipTurns: int = 0

class MoveRecord(BaseModel):
    kind: MoveKind
    playerId: str
    tiles: List[PlacedTile] = []
    words: List[str] = []
    score: int = 0
    previousRack: List[str] = []
    drawn: List[str] = []
    returned: List[str] = []
    previousBagCount: int = 0
    previousTurnIndex: int = 0
    previousStatus: GameStatus = 'in_progress'
    previousScorelessTurns: int = 0
    previousSkipTurns: Dict[str, int] = {}
    # end-of-game rack adjustments applied by this move, keyed by player id
    adjustments: Dict[str, int] = {}
    challenged: bool = False

class GameState(BaseModel):
    channelId: str
    players: List[PlayerState]
    board: List[List[CellState]]
    bag: List[str] = []
    turnIndex: int = 0
    status: GameStatus = 'awaiting_start'
    lastMove: Optional[MoveRecord] = None
    scorelessTurns: int = 0
    createdBy: Optional[str] = None

# Request / response bodies

class PlayerRef(BaseModel):
    id: str
    name: str = ''

class NewGameRequest(BaseModel):
    creator: str
    players: List[PlayerRef] = Field(default_factory=list)

class PlayerRequest(BaseModel):
    playerId: str

class PlayRequest(BaseModel):
    playerId: str
    tiles: List[PlacedTile]

class ExchangeRequest(BaseModel):
    playerId: str
    tiles: List[str]

class ReorderRequest(BaseModel):
    playerId: str
    order: List[str]

class CommandResult(BaseModel):
    ok: bool = True
    message: str = ''
    words: List[str] = []
    score: int = 0
    currentPlayerId: Optional[str] = None
    status: GameStatus = 'in_progress'

class RackView(BaseModel):
    playerId: str
    rack: List[str]
    score: int
    bagCount: int
