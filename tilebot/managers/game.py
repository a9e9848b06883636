from __future__ import annotations
import asyncio
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Mapping, Optional, Sequence

import structlog

from ..config import Settings
from ..dictionary import DictionaryService
from ..engine.session import GameSession, Status, TurnResult
from ..errors import GameAlreadyExists, SessionBusy
from ..schemas import CommandResult, GameState, PlacedTile, RackView
from .notifier import Notifier
from .store import SessionStore

LOGGER = structlog.get_logger(__name__)


def _abandon(lock: asyncio.Lock, acquire: asyncio.Future) -> None:
    """Cancel a pending acquire, releasing the lock if it was granted anyway."""
    def release_if_granted(fut: asyncio.Future) -> None:
        if not fut.cancelled() and fut.exception() is None:
            lock.release()

    acquire.cancel()
    acquire.add_done_callback(release_if_granted)


class GameManager:
    """Runs game commands one channel at a time.

    Each command takes the channel's lock (bounded wait, ``SessionBusy`` on
    timeout), loads the session, applies one transition, saves, then notifies
    before releasing the lock.
    A rejected command saves nothing; a failed save raises ``StoreError``.
    """

    def __init__(
        self,
        store: SessionStore,
        dictionary: DictionaryService,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        rng_factory: Callable[[], random.Random] = random.Random,
    ):
        self.store = store
        self.dictionary = dictionary
        self.notifier = notifier
        self.settings = settings or Settings()
        self.rng_factory = rng_factory
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    @asynccontextmanager
    async def locked(self, channel_id: str) -> AsyncIterator[None]:
        """Hold the channel's lock; locks exist only while someone holds or waits."""
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = self._locks[channel_id] = asyncio.Lock()
        self._waiting[channel_id] = self._waiting.get(channel_id, 0) + 1
        try:
            await self._acquire(channel_id, lock)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiting[channel_id] -= 1
            if not self._waiting[channel_id]:
                del self._waiting[channel_id]
                del self._locks[channel_id]

    async def _acquire(self, channel_id: str, lock: asyncio.Lock) -> None:
        timeout = self.settings.lock_timeout_sec
        acquire = asyncio.ensure_future(lock.acquire())
        try:
            await asyncio.wait_for(asyncio.shield(acquire), timeout=timeout)
        except asyncio.TimeoutError:
            _abandon(lock, acquire)
            LOGGER.warning('session_busy', channel_id=channel_id, timeout=timeout)
            raise SessionBusy(channel_id, timeout) from None
        except asyncio.CancelledError:
            _abandon(lock, acquire)
            raise

    def _load(self, channel_id: str) -> GameSession:
        state = self.store.load(channel_id)
        return GameSession.from_state(state, rng=self.rng_factory(), settings=self.settings)

    def _save(self, session: GameSession) -> GameState:
        state = session.to_state()
        self.store.save(session.channel_id, state)
        return state

    async def _notify(self, session: GameSession, state: GameState, player_ids: Sequence[str]) -> None:
        if not self.notifier:
            return
        await self.notifier.publish_state(session.channel_id, state, session.summary())
        for pid in player_ids:
            await self.notifier.send_rack(session.channel_id, self._rack_view(session, pid))

    @staticmethod
    def _rack_view(session: GameSession, player_id: str) -> RackView:
        player = session.player(player_id)
        return RackView(playerId=player.id, rack=list(player.rack.tiles), score=player.score,
                        bagCount=session.bag.remaining())

    @staticmethod
    def _result(session: GameSession, result: TurnResult) -> CommandResult:
        return CommandResult(
            message=result.message,
            words=result.words,
            score=result.score,
            currentPlayerId=session.current_player.id if session.status == Status.IN_PROGRESS else None,
            status=session.status.value,
        )

    async def _mutate(self, channel_id: str, action: Callable[[GameSession], TurnResult]) -> CommandResult:
        async with self.locked(channel_id):
            session = self._load(channel_id)
            result = action(session)
            state = self._save(session)
            # publish under the lock so clients see states in commit order
            await self._notify(session, state, [p.id for p in session.players])
        return self._result(session, result)

    # Commands

    async def new_game(self, channel_id: str, creator: str, player_ids: Sequence[str],
                       names: Optional[Mapping[str, str]] = None) -> GameSession:
        async with self.locked(channel_id):
            # a finished game may be replaced, a running one may not
            if self.store.exists(channel_id) and self.store.load(channel_id).status != Status.FINISHED.value:
                LOGGER.warning('game_exists', channel_id=channel_id, creator=creator)
                raise GameAlreadyExists(channel_id)
            session = GameSession.new(channel_id, creator, player_ids, names=names,
                                      rng=self.rng_factory(), settings=self.settings)
            state = self._save(session)
            await self._notify(session, state, [p.id for p in session.players])
        return session

    async def play(self, channel_id: str, player_id: str, tiles: List[PlacedTile]) -> CommandResult:
        return await self._mutate(channel_id, lambda s: s.play(player_id, tiles, self.dictionary))

    async def exchange(self, channel_id: str, player_id: str, tiles: List[str]) -> CommandResult:
        return await self._mutate(channel_id, lambda s: s.exchange(player_id, tiles))

    async def pass_turn(self, channel_id: str, player_id: str) -> CommandResult:
        return await self._mutate(channel_id, lambda s: s.pass_turn(player_id))

    async def challenge(self, channel_id: str, player_id: str) -> CommandResult:
        return await self._mutate(channel_id, lambda s: s.challenge(player_id, self.dictionary))

    async def undo(self, channel_id: str, player_id: str) -> CommandResult:
        return await self._mutate(channel_id, lambda s: s.undo(player_id))

    async def reorder(self, channel_id: str, player_id: str, order: List[str]) -> RackView:
        async with self.locked(channel_id):
            session = self._load(channel_id)
            session.reorder(player_id, order)
            self._save(session)
            view = self._rack_view(session, player_id)
            if self.notifier:
                await self.notifier.send_rack(channel_id, view)
        return view

    async def end_game(self, channel_id: str, player_id: str) -> None:
        """Abandon the channel's game; only a seated player may do this."""
        async with self.locked(channel_id):
            session = self._load(channel_id)
            session.player(player_id)
            self.store.delete(channel_id)
        LOGGER.info('game_abandoned', channel_id=channel_id, player_id=player_id)

    # Queries

    async def rack(self, channel_id: str, player_id: str) -> RackView:
        async with self.locked(channel_id):
            session = self._load(channel_id)
        return self._rack_view(session, player_id)

    async def state(self, channel_id: str) -> GameSession:
        async with self.locked(channel_id):
            return self._load(channel_id)
