from __future__ import annotations
from typing import Any, Dict, Protocol

from ..schemas import GameState, RackView


def player_room(channel_id: str, player_id: str) -> str:
    """Socket.IO room that only one player's connections join."""
    return f"{channel_id}:{player_id}"


def public_state(state: GameState) -> Dict[str, Any]:
    """Game state with racks and bag contents stripped out."""
    data = state.model_dump(exclude={'bag': True, 'lastMove': {'previousRack', 'drawn', 'returned'},
                                     'players': {'__all__': {'rack'}}})
    data['bagCount'] = len(state.bag)
    return data


class Notifier(Protocol):
    async def publish_state(self, channel_id: str, state: GameState, text: str) -> None: ...

    async def send_rack(self, channel_id: str, rack: RackView) -> None: ...


class SocketIONotifier:
    """Pushes updates to the channel room and to each player's private room."""

    def __init__(self, sio):
        self.sio = sio

    async def publish_state(self, channel_id: str, state: GameState, text: str) -> None:
        await self.sio.emit('game:state', { 'state': public_state(state), 'text': text }, room=channel_id)

    async def send_rack(self, channel_id: str, rack: RackView) -> None:
        await self.sio.emit('game:rack', rack.model_dump(), room=player_room(channel_id, rack.playerId))
