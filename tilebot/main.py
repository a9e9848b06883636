from __future__ import annotations
from typing import Dict

import socketio
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .dictionary import build_dictionary
from .errors import (
    ConcurrencyError,
    GameError,
    SessionError,
    SessionNotFound,
    StoreError,
)
from .logging_config import configure_logging
from .managers.game import GameManager
from .managers.notifier import SocketIONotifier, player_room, public_state
from .managers.store import build_store
from .schemas import (
    CommandResult,
    ExchangeRequest,
    NewGameRequest,
    PlayerRequest,
    PlayRequest,
    RackView,
    ReorderRequest,
)

LOGGER = structlog.get_logger(__name__)

def _status_for(exc: GameError) -> int:
    if isinstance(exc, SessionNotFound):
        return 404
    if isinstance(exc, (SessionError, ConcurrencyError)):
        return 409
    if isinstance(exc, StoreError):
        return 503
    return 400

def create_app(settings: Settings | None = None, games: GameManager | None = None):
    """Build the FastAPI app wrapped in the Socket.IO ASGI app.

    Returns ``(asgi_app, fastapi_app, sio)``.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # Socket.IO server (ASGI)
    sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=settings.cors_origins)
    app = FastAPI(title="Tilebot Server", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    if games is None:
        games = GameManager(
            build_store(settings),
            build_dictionary(settings.word_list),
            SocketIONotifier(sio),
            settings,
        )
    app.state.games = games
    app.state.settings = settings

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        status = _status_for(exc)
        log = LOGGER.error if status >= 500 else LOGGER.info
        log('command_rejected', path=request.url.path, code=exc.code, message=exc.message)
        headers = { 'Retry-After': '1' } if isinstance(exc, ConcurrencyError) else None
        return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)

    # Dictionary validation REST endpoint
    @app.get('/dict/validate')
    async def validate_word(word: str):
        valid = games.dictionary.is_valid(word)
        definition = games.dictionary.definition(word) if valid else None
        return { 'word': word.upper(), 'valid': valid, 'definition': definition }

    @app.post('/channels/{channel_id}/game', status_code=201)
    async def new_game(channel_id: str, body: NewGameRequest) -> Dict:
        names = { p.id: p.name for p in body.players }
        session = await games.new_game(channel_id, body.creator, [p.id for p in body.players], names)
        return public_state(session.to_state())

    @app.get('/channels/{channel_id}/game')
    async def get_game(channel_id: str) -> Dict:
        session = await games.state(channel_id)
        return { **public_state(session.to_state()), 'text': session.summary() }

    @app.delete('/channels/{channel_id}/game', status_code=204)
    async def end_game(channel_id: str, playerId: str):
        await games.end_game(channel_id, playerId)

    @app.get('/channels/{channel_id}/players/{player_id}/rack')
    async def get_rack(channel_id: str, player_id: str) -> RackView:
        """Private rack view.

        Player ids are trusted as given: the chat bot in front of this service
        authenticates users and only asks for the rack of the one who spoke.
        """
        return await games.rack(channel_id, player_id)

    @app.post('/channels/{channel_id}/play')
    async def play(channel_id: str, body: PlayRequest) -> CommandResult:
        return await games.play(channel_id, body.playerId, body.tiles)

    @app.post('/channels/{channel_id}/exchange')
    async def exchange(channel_id: str, body: ExchangeRequest) -> CommandResult:
        return await games.exchange(channel_id, body.playerId, body.tiles)

    @app.post('/channels/{channel_id}/pass')
    async def pass_turn(channel_id: str, body: PlayerRequest) -> CommandResult:
        return await games.pass_turn(channel_id, body.playerId)

    @app.post('/channels/{channel_id}/challenge')
    async def challenge(channel_id: str, body: PlayerRequest) -> CommandResult:
        return await games.challenge(channel_id, body.playerId)

    @app.post('/channels/{channel_id}/undo')
    async def undo(channel_id: str, body: PlayerRequest) -> CommandResult:
        return await games.undo(channel_id, body.playerId)

    @app.post('/channels/{channel_id}/reorder')
    async def reorder(channel_id: str, body: ReorderRequest) -> RackView:
        return await games.reorder(channel_id, body.playerId, body.order)

    # Socket.IO Events
    @sio.event
    async def connect(sid, environ, auth):
        """Bind the connection to the player id sent as the auth token.

        The token is not verified here. Deployments must sit behind a gateway
        that authenticates the user, otherwise any client can claim a player id
        and receive that player's rack in its private room.
        """
        player_id = None
        if isinstance(auth, dict):
            token = auth.get('token')
            if isinstance(token, str) and token.strip():
                player_id = token.strip()
        await sio.save_session(sid, { 'playerId': player_id })

    @sio.on('channel:join')
    async def channel_join(sid, channel_id: str):
        sess = await sio.get_session(sid) or {}
        await sio.enter_room(sid, channel_id)
        if sess.get('playerId'):
            await sio.enter_room(sid, player_room(channel_id, sess['playerId']))
        await sio.save_session(sid, { **sess, 'channelId': channel_id })

    @sio.on('channel:leave')
    async def channel_leave(sid, channel_id: str):
        sess = await sio.get_session(sid) or {}
        await sio.leave_room(sid, channel_id)
        if sess.get('playerId'):
            await sio.leave_room(sid, player_room(channel_id, sess['playerId']))

    # Mount Socket.IO ASGI application
    asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
    return asgi_app, app, sio

def run() -> None:
    import uvicorn

    uvicorn.run('tilebot.main:application', host='0.0.0.0', port=8000)

# Export ASGI app for uvicorn
application, app, sio = create_app()

# For local running: uvicorn tilebot.main:application --reload --host 0.0.0.0 --port 8000
