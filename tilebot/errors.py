from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional


class GameError(Exception):
    """Base for every error surfaced to the caller of a game command."""

    code = 'game_error'

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return { 'code': self.code, 'message': self.message, 'details': self.details }


# Validation errors: rejected before any mutation, shown to the acting player

class ValidationError(GameError):
    code = 'validation_error'


class InvalidPlayerCount(ValidationError):
    code = 'invalid_player_count'


class IllegalPlacement(ValidationError):
    code = 'illegal_placement'

    def __init__(self, rule: str, message: str):
        super().__init__(message, rule=rule)
        self.rule = rule


class InvalidWord(ValidationError):
    code = 'invalid_word'

    def __init__(self, words: Iterable[str]):
        self.words: List[str] = list(words)
        super().__init__(f"Not in the dictionary: {', '.join(self.words)}", words=self.words)


class TileNotHeld(ValidationError):
    code = 'tile_not_held'

    def __init__(self, tiles: Iterable[str]):
        self.tiles: List[str] = list(tiles)
        super().__init__(f"Tiles not on your rack: {' '.join(self.tiles)}", tiles=self.tiles)


class InvalidExchange(ValidationError):
    code = 'invalid_exchange'


class InvalidPermutation(ValidationError):
    code = 'invalid_permutation'


# Turn errors

class TurnError(GameError):
    code = 'turn_error'


class NotYourTurn(TurnError):
    code = 'not_your_turn'

    def __init__(self, player_id: str, current_player_id: Optional[str]):
        super().__init__('It is not your turn', playerId=player_id, currentPlayerId=current_player_id)


class NotSeated(TurnError):
    code = 'not_seated'

    def __init__(self, player_id: str):
        super().__init__('You are not playing in this game', playerId=player_id)


class NoActiveChallenge(TurnError):
    code = 'no_active_challenge'


class NothingToUndo(TurnError):
    code = 'nothing_to_undo'


class GameOver(TurnError):
    code = 'game_over'


# Session lifecycle errors

class SessionError(GameError):
    code = 'session_error'


class SessionNotFound(SessionError):
    code = 'session_not_found'

    def __init__(self, channel_id: str):
        super().__init__('No game in progress in this channel', channelId=channel_id)


class GameAlreadyExists(SessionError):
    code = 'game_already_exists'

    def __init__(self, channel_id: str):
        super().__init__('A game is already in progress in this channel', channelId=channel_id)


# Infrastructure errors

class ConcurrencyError(GameError):
    code = 'concurrency_error'


class SessionBusy(ConcurrencyError):
    code = 'session_busy'

    def __init__(self, channel_id: str, timeout: float):
        super().__init__('Another command is still running for this channel, try again',
                         channelId=channel_id, timeout=timeout)


class StoreError(GameError):
    code = 'store_error'
