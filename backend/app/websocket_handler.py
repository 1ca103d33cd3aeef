"""
=============================================================================
FAIRHOUSE - Manejador de WebSockets (Socket.IO)
=============================================================================
Notificaciones en tiempo real de los cambios de estado:

    game:created -> game:resolved -> game:claimed
    game:cancelled / game:expired
    casino:updated
    tournament:created / tournament:joined / tournament:finalized

Salas:
- game:{address}        Seguidores de un juego
- player:{identidad}    Todos los juegos de un jugador
- tournament:{address}  Seguidores de un torneo
- casino                Cambios de configuración y estadísticas

Cada publicación también guarda el snapshot en el archivo de auditoría
(si está habilitado).
=============================================================================
"""

import logging
import time
from typing import Any, Dict, Optional

import socketio
from sqlalchemy.exc import SQLAlchemyError

from .casino_ledger import Casino, PlayerStats
from .config import ApiConfig
from .errors import AuthorizationError, CasinoError, CasinoErrorCode, ValidationError
from .game_record import Game
from .services import get_archive, get_engine
from .tournament import Tournament
from .wager_validator import WagerValidator

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURACIÓN DEL SOCKET
# =============================================================================

class SocketConfig:
    """Configuración del servidor de WebSockets."""

    HEARTBEAT_INTERVAL = 25          # Segundos entre pings
    HEARTBEAT_TIMEOUT = 60           # Timeout para considerar desconexión
    CASINO_ROOM = "casino"


def game_room(address: str) -> str:
    return f"game:{address}"


def player_room(player: str) -> str:
    return f"player:{player}"


def tournament_room(address: str) -> str:
    return f"tournament:{address}"


# =============================================================================
# SERVIDOR SOCKET.IO
# =============================================================================

sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins=ApiConfig.CORS_ORIGINS if ApiConfig.CORS_ORIGINS != ["*"] else '*',
    ping_timeout=SocketConfig.HEARTBEAT_TIMEOUT,
    ping_interval=SocketConfig.HEARTBEAT_INTERVAL
)


# =============================================================================
# PUBLICACIÓN (REST y Socket.IO)
# =============================================================================

async def _archive_snapshot(kind: str, record: Any) -> None:
    archive = get_archive()
    if archive is None:
        return
    try:
        if kind == "game":
            await archive.archive_game(record)
        elif kind == "casino":
            await archive.archive_casino(record)
        elif kind == "player":
            await archive.archive_player(record)
        elif kind == "tournament":
            await archive.archive_tournament(record)
    except SQLAlchemyError:
        # El archivo es auditoría: su caída no revierte la operación ya confirmada
        logger.exception("[ARCHIVE] Could not store %s snapshot", kind)


async def publish_game(event: str, game: Game) -> None:
    payload = game.to_dict()
    await sio.emit(event, payload, room=game_room(game.address))
    await sio.emit(event, payload, room=player_room(game.player))
    await _archive_snapshot("game", game)


async def publish_casino(casino: Casino) -> None:
    await sio.emit('casino:updated', casino.to_dict(), room=SocketConfig.CASINO_ROOM)
    await _archive_snapshot("casino", casino)


async def publish_player(profile: PlayerStats) -> None:
    await sio.emit('player:updated', profile.to_dict(), room=player_room(profile.player))
    await _archive_snapshot("player", profile)


async def publish_tournament(event: str, tournament: Tournament) -> None:
    await sio.emit(event, tournament.to_dict(), room=tournament_room(tournament.address))
    await _archive_snapshot("tournament", tournament)


async def publish_resolution(game: Game) -> None:
    """Juego resuelto: el juego, el casino y el perfil del jugador cambian juntos."""
    engine = get_engine()
    await publish_game('game:resolved', game)
    await publish_casino(engine.get_casino())
    if engine.player_address(game.player) in engine.store:
        await publish_player(engine.get_player(game.player))


# =============================================================================
# HANDLERS DE EVENTOS
# =============================================================================

async def _emit_error(sid: str, error: CasinoError) -> Dict[str, Any]:
    payload = error.to_dict()
    await sio.emit('error', payload, room=sid)
    return {'error': payload}


async def _caller_for(sid: str) -> Optional[str]:
    session = await sio.get_session(sid)
    return session.get('caller')


def _field(data: Any, key: str, kind: type = str,
           code: CasinoErrorCode = CasinoErrorCode.INVALID_CONFIGURATION) -> Any:
    """Lee un campo obligatorio del payload; ausente o de otro tipo es un error de validación."""
    if not isinstance(data, dict) or key not in data:
        raise ValidationError(CasinoErrorCode.INVALID_CONFIGURATION, f"missing field {key}")
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ValidationError(code, f"{key} must be {kind.__name__}")
    return value


@sio.event
async def connect(sid: str, environ: dict, auth: dict = None):
    """
    Nueva conexión. auth = {'caller_id': str} identifica al jugador; sin
    identidad la conexión solo puede seguir juegos y torneos.
    """
    caller = (auth or {}).get('caller_id')
    await sio.save_session(sid, {'caller': caller})
    if caller:
        await sio.enter_room(sid, player_room(caller))

    logger.info("[WS] Connection %s (caller=%s)", sid, caller)
    await sio.emit('connected', {
        'sid': sid,
        'caller': caller,
        'message': 'Connected to Fairhouse',
        'server_time': time.time()
    }, room=sid)


@sio.event
async def disconnect(sid: str):
    logger.info("[WS] Disconnected %s", sid)


@sio.event
async def subscribe_game(sid: str, data: dict):
    """data = {'game_id': str}. Responde con el snapshot actual."""
    try:
        game = get_engine().get_game(_field(data, 'game_id'))
    except CasinoError as e:
        return await _emit_error(sid, e)

    await sio.enter_room(sid, game_room(game.address))
    snapshot = game.to_dict()
    await sio.emit('game:snapshot', snapshot, room=sid)
    return snapshot


@sio.event
async def subscribe_tournament(sid: str, data: dict):
    try:
        tournament = get_engine().get_tournament(_field(data, 'tournament_id'))
    except CasinoError as e:
        return await _emit_error(sid, e)

    await sio.enter_room(sid, tournament_room(tournament.address))
    snapshot = tournament.to_dict()
    await sio.emit('tournament:snapshot', snapshot, room=sid)
    return snapshot


@sio.event
async def subscribe_casino(sid: str, data: dict = None):
    try:
        report = get_engine().casino_report()
    except CasinoError as e:
        return await _emit_error(sid, e)

    await sio.enter_room(sid, SocketConfig.CASINO_ROOM)
    await sio.emit('casino:snapshot', report, room=sid)
    return report


@sio.event
async def place_bet(sid: str, data: dict):
    """
    Crea un juego desde el socket.

    data = {
        'game_type': str,
        'bet_amount': int,
        'prediction': [int, ...],
        'client_seed': str,
        'server_seed_hash': str
    }
    """
    caller = await _caller_for(sid)
    if not caller:
        return await _emit_error(sid, AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "caller_id required"))

    engine = get_engine()
    try:
        game_id = engine.create_game(
            caller,
            _field(data, 'game_type', code=CasinoErrorCode.INVALID_GAME_TYPE),
            _field(data, 'bet_amount', int, CasinoErrorCode.INVALID_AMOUNT),
            WagerValidator.parse_prediction(data.get('prediction', [])),
            _field(data, 'client_seed', code=CasinoErrorCode.INVALID_CLIENT_SEED),
            _field(data, 'server_seed_hash', code=CasinoErrorCode.INVALID_SERVER_SEED),
        )
    except CasinoError as e:
        return await _emit_error(sid, e)

    game = engine.get_game(game_id)
    await sio.enter_room(sid, game_room(game_id))
    await publish_game('game:created', game)
    return {'game_id': game_id}


@sio.event
async def claim_winnings(sid: str, data: dict):
    """data = {'game_id': str}"""
    caller = await _caller_for(sid)
    engine = get_engine()
    try:
        game_id = _field(data, 'game_id')
        payout = engine.claim_winnings(caller or "", game_id)
    except CasinoError as e:
        return await _emit_error(sid, e)

    await publish_game('game:claimed', engine.get_game(game_id))
    return {'game_id': game_id, 'payout': payout}


# =============================================================================
# APLICACIÓN ASGI
# =============================================================================

def create_socket_app(app=None):
    """Envuelve la aplicación FastAPI con Socket.IO (ruta /socket.io)."""
    return socketio.ASGIApp(sio, other_asgi_app=app)
