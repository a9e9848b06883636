import random
from typing import Dict, Iterable, List, Sequence

import pytest

from tilebot.config import Settings
from tilebot.dictionary import DictionaryService
from tilebot.engine.session import GameSession
from tilebot.managers.game import GameManager
from tilebot.managers.store import InMemorySessionStore
from tilebot.schemas import PlacedTile


class WordSet:
    """Validator whose vocabulary a test can change between calls."""

    def __init__(self, words: Iterable[str]):
        self.words = {w.upper() for w in words}

    def is_valid(self, word: str) -> bool:
        return word.upper() in self.words


class RecordingNotifier:
    def __init__(self):
        self.states = []
        self.racks = []

    async def publish_state(self, channel_id, state, text):
        self.states.append((channel_id, state, text))

    async def send_rack(self, channel_id, rack):
        self.racks.append((channel_id, rack))


def across(row: int, col: int, word: str, blanks: Sequence[int] = ()) -> List[PlacedTile]:
    return [PlacedTile(row=row, col=col + i, letter=ch, isBlank=i in blanks) for i, ch in enumerate(word)]


def down(row: int, col: int, word: str, blanks: Sequence[int] = ()) -> List[PlacedTile]:
    return [PlacedTile(row=row + i, col=col, letter=ch, isBlank=i in blanks) for i, ch in enumerate(word)]


def set_racks(session: GameSession, racks: Dict[str, Sequence[str]]) -> None:
    """Hand chosen tiles to players, keeping the 100-tile total intact.

    Every rack goes back into the bag first; listed players then take their
    tiles out of it and everyone else draws a fresh rack.
    """
    for player in session.players:
        session.bag.put_back(player.rack.tiles)
        player.rack.tiles = []
    for pid, tiles in racks.items():
        session.player(pid).rack.tiles = session.bag.withdraw(tiles)
    for player in session.players:
        if player.id not in racks:
            player.rack.refill(session.bag)


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def settings():
    return Settings(lock_timeout_sec=0.2)


@pytest.fixture()
def words():
    return WordSet(['CAT', 'CATS', 'COAT', 'AT', 'TA', 'AA', 'TEA', 'EAT', 'ACT'])


@pytest.fixture()
def session(rng, settings):
    return GameSession.new('C1', 'alice', ['alice', 'bob'], rng=rng, settings=settings)


@pytest.fixture()
def store():
    return InMemorySessionStore()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def manager(store, notifier, settings):
    return GameManager(store, DictionaryService(), notifier, settings, rng_factory=lambda: random.Random(99))
