"""Per-channel game session and its turn state machine.

A :class:`GameSession` is the in-memory form of one channel's game. Every
transition runs inside :meth:`GameSession._transaction`, which captures a
``GameState`` memento first and restores it if a :class:`GameError` escapes,
so a rejected command leaves the session exactly as it was.

The most recent move is kept as a :class:`MoveRecord` with enough of the
pre-move state (rack, drawn and returned tiles, turn pointer, status, penalty
counters, end-of-game adjustments) to reverse it for ``undo`` or a successful
``challenge``.
"""

from __future__ import annotations

import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

import structlog

from ..config import Settings
from ..errors import (
    GameError,
    GameOver,
    InvalidExchange,
    InvalidPlayerCount,
    InvalidWord,
    NoActiveChallenge,
    NotSeated,
    NothingToUndo,
    NotYourTurn,
)
from ..schemas import GameState, MoveRecord, PlacedTile, PlayerState
from .bag import BLANK, RACK_SIZE, TileBag
from .board import Board
from .rack import Player, Rack

LOGGER = structlog.get_logger(__name__)

MIN_PLAYERS = 2
MAX_PLAYERS = 4


class Status(str, Enum):
    AWAITING_START = 'awaiting_start'
    IN_PROGRESS = 'in_progress'
    FINISHED = 'finished'


class WordValidator(Protocol):
    def is_valid(self, word: str) -> bool: ...


@dataclass
class TurnResult:
    """Outcome of one transition, for the dispatcher to report."""

    kind: str
    player_id: str
    message: str
    words: List[str] = field(default_factory=list)
    score: int = 0
    upheld: Optional[bool] = None


class GameSession:
    def __init__(
        self,
        channel_id: str,
        players: Sequence[Player],
        board: Optional[Board] = None,
        bag: Optional[TileBag] = None,
        *,
        turn_index: int = 0,
        status: Status = Status.IN_PROGRESS,
        last_move: Optional[MoveRecord] = None,
        scoreless_turns: int = 0,
        created_by: Optional[str] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ):
        self.channel_id = channel_id
        self.rng = rng or random.Random()
        self.settings = settings or Settings()
        self.players: List[Player] = list(players)
        self.board = board or Board()
        self.bag = bag or TileBag(rng=self.rng)
        self.turn_index = turn_index
        self.status = status
        self.last_move = last_move
        self.scoreless_turns = scoreless_turns
        self.created_by = created_by

    # ------------------------------------------------------------------
    # Construction and persistence
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        channel_id: str,
        creator: str,
        player_ids: Sequence[str],
        *,
        names: Optional[Mapping[str, str]] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
    ) -> "GameSession":
        """Seat 2-4 players in random order and deal each a full rack."""
        ids = list(player_ids)
        if not MIN_PLAYERS <= len(ids) <= MAX_PLAYERS:
            raise InvalidPlayerCount(
                f'Invalid number of players: must be {MIN_PLAYERS} - {MAX_PLAYERS}', count=len(ids),
            )
        if len(set(ids)) != len(ids):
            raise InvalidPlayerCount('Each player can only be added once', count=len(ids))

        rng = rng or random.Random()
        rng.shuffle(ids)
        names = names or {}
        session = cls(
            channel_id,
            [Player(id=pid, name=names.get(pid, '')) for pid in ids],
            Board(),
            TileBag.initialize(rng),
            status=Status.AWAITING_START,
            created_by=creator,
            rng=rng,
            settings=settings,
        )
        for player in session.players:
            player.rack.refill(session.bag)
        session.status = Status.IN_PROGRESS
        LOGGER.info('game_created', channel_id=channel_id, creator=creator,
                    order=[p.id for p in session.players])
        return session

    @classmethod
    def from_state(cls, state: GameState, *, rng: Optional[random.Random] = None,
                   settings: Optional[Settings] = None) -> "GameSession":
        session = cls(state.channelId, [], rng=rng, settings=settings)
        session._load(state)
        return session

    def _load(self, state: GameState) -> None:
        self.channel_id = state.channelId
        self.players = [
            Player(id=p.id, name=p.name, rack=Rack(p.rack), score=p.score, skip_turns=p.skipTurns)
            for p in state.players
        ]
        self.board = Board.from_state(state.board)
        self.bag = TileBag(state.bag, self.rng)
        self.turn_index = state.turnIndex
        self.status = Status(state.status)
        self.last_move = state.lastMove.model_copy(deep=True) if state.lastMove else None
        self.scoreless_turns = state.scorelessTurns
        self.created_by = state.createdBy

    def to_state(self) -> GameState:
        return GameState(
            channelId=self.channel_id,
            players=[
                PlayerState(id=p.id, name=p.name, score=p.score, rack=list(p.rack.tiles), skipTurns=p.skip_turns)
                for p in self.players
            ],
            board=self.board.to_state(),
            bag=list(self.bag.tiles),
            turnIndex=self.turn_index,
            status=self.status.value,
            lastMove=self.last_move.model_copy(deep=True) if self.last_move else None,
            scorelessTurns=self.scoreless_turns,
            createdBy=self.created_by,
        )

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        snapshot = self.to_state()
        try:
            yield
        except GameError:
            self._load(snapshot)
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_player(self) -> Player:
        return self.players[self.turn_index]

    def player(self, player_id: str) -> Player:
        return self.players[self._seat(player_id)]

    def rack(self, player_id: str) -> List[str]:
        return list(self.player(player_id).rack.tiles)

    def tile_total(self) -> int:
        """Tiles in the bag, on racks and on the board; always 100."""
        return self.bag.remaining() + sum(len(p.rack) for p in self.players) + self.board.tile_count()

    def standings(self) -> List[Player]:
        return sorted(self.players, key=lambda p: p.score, reverse=True)

    def winners(self) -> List[Player]:
        if self.status != Status.FINISHED:
            return []
        best = max(p.score for p in self.players)
        return [p for p in self.players if p.score == best]

    def summary(self) -> str:
        """Board plus scoreboard as plain text for the channel."""
        lines = [self.board.render(), '']
        # final scoreboard is ranked, a running one keeps seat order
        players = self.standings() if self.status == Status.FINISHED else self.players
        for p in players:
            marker = '>' if p is self.current_player and self.status == Status.IN_PROGRESS else ' '
            lines.append(f'{marker} {p.name or p.id}: {p.score}')
        lines.append(f'Tiles in bag: {self.bag.remaining()}')
        if self.status == Status.FINISHED:
            lines.append('Game over! Winner: ' + ', '.join(p.name or p.id for p in self.winners()))
        return '\n'.join(lines)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _seat(self, player_id: str) -> int:
        for idx, p in enumerate(self.players):
            if p.id == player_id:
                return idx
        raise NotSeated(player_id)

    def _require_turn(self, player_id: str) -> Player:
        idx = self._seat(player_id)
        if self.status != Status.IN_PROGRESS:
            raise GameOver('The game is over')
        if idx != self.turn_index:
            raise NotYourTurn(player_id, self.current_player.id)
        return self.players[idx]

    def _begin_move(self, kind: str, player: Player) -> MoveRecord:
        return MoveRecord(
            kind=kind,
            playerId=player.id,
            previousRack=list(player.rack.tiles),
            previousBagCount=self.bag.remaining(),
            previousTurnIndex=self.turn_index,
            previousStatus=self.status.value,
            previousScorelessTurns=self.scoreless_turns,
            previousSkipTurns={p.id: p.skip_turns for p in self.players},
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def play(self, player_id: str, tiles: Sequence[PlacedTile], validator: WordValidator) -> TurnResult:
        with self._transaction():
            player = self._require_turn(player_id)
            placement = [t.model_copy(update={'letter': t.letter.upper()}) for t in tiles]
            self.board.validate_placement(placement)
            words = self.board.extract_words(placement)
            invalid = [w.text for w in words if not validator.is_valid(w.text)]
            if invalid:
                raise InvalidWord(invalid)

            move = self._begin_move('play', player)
            player.rack.remove([BLANK if t.isBlank else t.letter for t in placement])
            self.board.apply(placement)
            score = self.board.score(words, len(placement), self.settings.bingo_bonus)
            player.score += score
            move.tiles = placement
            move.words = [w.text for w in words]
            move.score = score
            move.drawn = player.rack.refill(self.bag)
            self.last_move = move
            self.scoreless_turns = 0

            if not self.bag.tiles and not player.rack.tiles:
                move.adjustments = self._finish(finisher=player)
            else:
                self._advance()

        LOGGER.info('word_played', channel_id=self.channel_id, player_id=player_id,
                    words=move.words, score=score, bag=self.bag.remaining())
        return TurnResult('play', player_id, f"Played {', '.join(move.words)} for {score} points",
                          words=move.words, score=score)

    def exchange(self, player_id: str, tiles: Sequence[str]) -> TurnResult:
        with self._transaction():
            player = self._require_turn(player_id)
            wanted = [t.upper() for t in tiles]
            if not wanted:
                raise InvalidExchange('Choose at least one tile to exchange')
            if self.bag.remaining() < RACK_SIZE:
                raise InvalidExchange(
                    f'Exchanges need at least {RACK_SIZE} tiles in the bag',
                    remaining=self.bag.remaining(),
                )
            move = self._begin_move('exchange', player)
            player.rack.remove(wanted)
            drawn = self.bag.exchange(wanted)
            player.rack.add(drawn)
            move.drawn = drawn
            move.returned = wanted
            self.last_move = move
            self._scoreless(move)

        LOGGER.info('tiles_exchanged', channel_id=self.channel_id, player_id=player_id, count=len(wanted))
        return TurnResult('exchange', player_id, f'Exchanged {len(wanted)} tiles')

    def pass_turn(self, player_id: str) -> TurnResult:
        with self._transaction():
            player = self._require_turn(player_id)
            move = self._begin_move('pass', player)
            self.last_move = move
            self._scoreless(move)

        LOGGER.info('turn_passed', channel_id=self.channel_id, player_id=player_id)
        return TurnResult('pass', player_id, 'Passed')

    def challenge(self, player_id: str, validator: WordValidator) -> TurnResult:
        """Re-check the last play's words.

        An upheld challenge takes the play back and returns the turn to the
        challenged player. A failed challenge costs the challenger
        ``settings.challenge_penalty_turns`` turns, starting with the current
        one if it is theirs.
        """
        with self._transaction():
            move = self.last_move
            finishing_play = (
                self.status == Status.FINISHED and move is not None and move.previousStatus == Status.IN_PROGRESS.value
            )
            if finishing_play:
                challenger = self.player(player_id)
            else:
                challenger = self._require_turn(player_id)
            if move is None or move.kind != 'play' or move.playerId == player_id or move.challenged:
                raise NoActiveChallenge('There is no play to challenge')

            invalid = [w for w in move.words if not validator.is_valid(w)]
            if invalid:
                self._revert(move)
                LOGGER.info('challenge_upheld', channel_id=self.channel_id, player_id=player_id,
                            challenged=move.playerId, words=invalid)
                return TurnResult('challenge', player_id, f"Challenge upheld: {', '.join(invalid)} removed",
                                  words=invalid, score=-move.score, upheld=True)

            move.challenged = True
            challenger.skip_turns += self.settings.challenge_penalty_turns
            if self.status == Status.IN_PROGRESS and challenger is self.current_player and challenger.skip_turns > 0:
                challenger.skip_turns -= 1
                self._advance()

        LOGGER.info('challenge_failed', channel_id=self.channel_id, player_id=player_id,
                    challenged=move.playerId, penalty=self.settings.challenge_penalty_turns)
        return TurnResult('challenge', player_id, 'Challenge failed: every word is valid',
                          words=list(move.words), upheld=False)

    def undo(self, player_id: str) -> TurnResult:
        with self._transaction():
            self._seat(player_id)
            move = self.last_move
            if move is None or move.playerId != player_id:
                raise NothingToUndo('You have no move to undo')
            if move.challenged:
                raise NothingToUndo('A challenged move cannot be undone')
            self._revert(move)

        LOGGER.info('move_undone', channel_id=self.channel_id, player_id=player_id, kind=move.kind)
        return TurnResult('undo', player_id, f'Undid {move.kind}', words=list(move.words), score=-move.score)

    def reorder(self, player_id: str, order: Sequence[str]) -> TurnResult:
        with self._transaction():
            self.player(player_id).rack.reorder(order)
        return TurnResult('reorder', player_id, 'Rack reordered')

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _advance(self) -> None:
        n = len(self.players)
        idx = (self.turn_index + 1) % n
        while self.players[idx].skip_turns > 0:
            self.players[idx].skip_turns -= 1
            LOGGER.info('turn_skipped', channel_id=self.channel_id, player_id=self.players[idx].id)
            idx = (idx + 1) % n
        self.turn_index = idx

    def _scoreless(self, move: MoveRecord) -> None:
        self.scoreless_turns += 1
        if self.scoreless_turns >= self.settings.max_scoreless_turns:
            move.adjustments = self._finish()
        else:
            self._advance()

    def _finish(self, finisher: Optional[Player] = None) -> Dict[str, int]:
        """End the game and settle rack values.

        Everyone loses the value of their unplayed tiles; a player who went
        out also gains the total of the other racks.
        """
        adjustments: Dict[str, int] = {}
        for p in self.players:
            if p is not finisher:
                adjustments[p.id] = -p.rack.value
        if finisher is not None:
            adjustments[finisher.id] = -sum(adjustments.values())
        for p in self.players:
            p.score += adjustments.get(p.id, 0)
        self.status = Status.FINISHED
        LOGGER.info('game_finished', channel_id=self.channel_id,
                    scores={p.id: p.score for p in self.players})
        return adjustments

    def _revert(self, move: MoveRecord) -> None:
        player = self.player(move.playerId)
        for pid, delta in move.adjustments.items():
            self.player(pid).score -= delta
        if move.tiles:
            self.board.revert(move.tiles)
        player.score -= move.score
        if move.returned:
            self.bag.withdraw(move.returned)
        self.bag.put_back(move.drawn)
        player.rack.tiles = list(move.previousRack)
        for pid, skips in move.previousSkipTurns.items():
            self.player(pid).skip_turns = skips
        self.turn_index = move.previousTurnIndex
        self.status = Status(move.previousStatus)
        self.scoreless_turns = move.previousScorelessTurns
        self.last_move = None
