from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, Protocol
from urllib.parse import quote

import structlog
from pydantic import ValidationError as SchemaError

from ..config import Settings
from ..errors import SessionNotFound, StoreError
from ..schemas import GameState

LOGGER = structlog.get_logger(__name__)


class SessionStore(Protocol):
    """Durable storage for one serialized game per channel.

    ``save`` must be atomic per key. Failures raise :class:`StoreError` so the
    caller knows the stored state may be stale.
    """

    def load(self, channel_id: str) -> GameState: ...

    def save(self, channel_id: str, state: GameState) -> None: ...

    def delete(self, channel_id: str) -> None: ...

    def exists(self, channel_id: str) -> bool: ...


class InMemorySessionStore:
    """Keeps serialized JSON so every load hands back an independent copy."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def load(self, channel_id: str) -> GameState:
        raw = self._data.get(channel_id)
        if raw is None:
            raise SessionNotFound(channel_id)
        return GameState.model_validate_json(raw)

    def save(self, channel_id: str, state: GameState) -> None:
        self._data[channel_id] = state.model_dump_json()

    def delete(self, channel_id: str) -> None:
        self._data.pop(channel_id, None)

    def exists(self, channel_id: str) -> bool:
        return channel_id in self._data


class JsonFileSessionStore:
    """One ``scrabble-<channel>.json`` file per channel under ``data_dir``.

    The channel id is percent-encoded into the file name, so distinct ids never
    share a file and none can escape ``data_dir``.
    """

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def _path(self, channel_id: str) -> Path:
        return self.data_dir / f"scrabble-{quote(channel_id, safe='')}.json"

    def load(self, channel_id: str) -> GameState:
        path = self._path(channel_id)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            raise SessionNotFound(channel_id) from None
        except OSError as exc:
            LOGGER.error('session_load_failed', channel_id=channel_id, path=str(path), error=str(exc))
            raise StoreError(f'Could not read game state: {exc}', channelId=channel_id) from exc
        try:
            return GameState.model_validate_json(raw)
        except SchemaError as exc:
            LOGGER.error('session_corrupt', channel_id=channel_id, path=str(path))
            raise StoreError('Stored game state is corrupt', channelId=channel_id) from exc

    def save(self, channel_id: str, state: GameState) -> None:
        path = self._path(channel_id)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=path.name, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                    fh.write(state.model_dump_json())
                # rename is atomic on the same filesystem
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as exc:
            LOGGER.error('session_save_failed', channel_id=channel_id, path=str(path), error=str(exc))
            raise StoreError(f'Could not save game state: {exc}', channelId=channel_id) from exc

    def delete(self, channel_id: str) -> None:
        try:
            self._path(channel_id).unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(f'Could not delete game state: {exc}', channelId=channel_id) from exc

    def exists(self, channel_id: str) -> bool:
        return self._path(channel_id).exists()


def build_store(settings: Settings) -> SessionStore:
    if settings.store == 'file':
        return JsonFileSessionStore(settings.data_dir)
    if settings.store == 'memory':
        return InMemorySessionStore()
    raise ValueError(f"Unknown session store {settings.store!r}; expected 'memory' or 'file'")
