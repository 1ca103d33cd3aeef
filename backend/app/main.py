"""
=============================================================================
FAIRHOUSE - Punto de Entrada Principal (FastAPI + Socket.IO)
=============================================================================
Servidor del motor de apuestas con equidad demostrable (commit-reveal).

Integra:
- FastAPI para REST API
- Socket.IO para notificaciones en tiempo real
- Archivo de auditoría SQLAlchemy (opcional, ARCHIVE_ENABLED=true)
- Middleware de seguridad y CORS

Errores: cada CasinoError se responde con {"code", "message", "category"}
y un status HTTP según su categoría.
=============================================================================
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .admin import get_caller, router as admin_router
from .arithmetic import U64_MAX
from .config import ApiConfig, CasinoConstants
from .engine import CasinoEngine
from .errors import CasinoError, CasinoErrorCode
from .fairness import ProvableFairData
from .game_record import GameStatus
from .payout_engine import GameType, describe_outcome, resolve_outcome
from .repository import ArchiveRepository
from .services import get_archive, get_engine, set_archive
from .wager_validator import WagerValidator
from .websocket_handler import create_socket_app, publish_game, publish_player, publish_resolution, publish_tournament

logger = logging.getLogger(__name__)


# =============================================================================
# LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestiona el ciclo de vida de la aplicación."""
    logger.info("[FAIRHOUSE] Starting server (version %s)", ApiConfig.VERSION)
    if ApiConfig.ARCHIVE_ENABLED and get_archive() is None:
        archive = ArchiveRepository(ApiConfig.DATABASE_URL)
        await archive.create_schema()
        set_archive(archive)
        logger.info("[FAIRHOUSE] Audit archive enabled")
    yield
    archive = get_archive()
    if archive is not None:
        await archive.dispose()
    logger.info("[FAIRHOUSE] Server stopped")


# =============================================================================
# APLICACIÓN FASTAPI
# =============================================================================

app = FastAPI(
    title="Fairhouse API",
    description="""
    ## Motor de apuestas con equidad demostrable

    ### Características:
    - **Commit-Reveal**: el operador se compromete con SHA256(server_seed) antes de la apuesta
    - **Economía en puntos básicos**: house edge y fee de tesorería enteros
    - **Operaciones atómicas**: o se aplica todo o nada
    - **WebSockets**: notificaciones de cada cambio de estado

    ### Estados de Juego (FSM):
    1. CREATED → ACTIVE → RESOLVED → CLAIMED (salidas: CANCELLED, EXPIRED)
    """,
    version=ApiConfig.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# =============================================================================
# MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=ApiConfig.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Agrega headers de seguridad a las respuestas."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# =============================================================================
# ERRORES DEL MOTOR -> HTTP
# =============================================================================

CATEGORY_STATUS = {
    "validation": 400,
    "arithmetic": 400,
    "state": 409,
    "tournament": 409,
    "storage": 409,
    "fairness": 422,
    "authorization": 403,
    "resource": 402,
}

NOT_FOUND_CODES = {
    CasinoErrorCode.GAME_NOT_FOUND,
    CasinoErrorCode.PLAYER_NOT_FOUND,
    CasinoErrorCode.TOURNAMENT_NOT_FOUND,
    CasinoErrorCode.ACCOUNT_NOT_INITIALIZED,
}


def status_for(error: CasinoError) -> int:
    if error.code in NOT_FOUND_CODES:
        return 404
    return CATEGORY_STATUS.get(error.category, 400)


@app.exception_handler(CasinoError)
async def casino_error_handler(request: Request, exc: CasinoError):
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


# =============================================================================
# SCHEMAS
# =============================================================================

class CreateGameRequest(BaseModel):
    game_type: str
    bet_amount: int = Field(..., ge=0, le=U64_MAX)
    prediction: List[int] = Field(default_factory=list)
    client_seed: str
    server_seed_hash: str


class ResolveGameRequest(BaseModel):
    server_seed: str = Field(..., min_length=1)
    nonce: int


class PlayerStatsDelta(BaseModel):
    games_played: int = Field(0, ge=0, le=U64_MAX)
    total_wagered: int = Field(0, ge=0, le=U64_MAX)
    total_won: int = Field(0, ge=0, le=U64_MAX)
    player: Optional[str] = None


class VerifyRequest(BaseModel):
    """Verificación pública de un resultado, sin tocar el motor."""
    server_seed: str
    server_seed_hash: str
    client_seed: str
    nonce: int = Field(..., ge=0, le=U64_MAX)
    game_type: Optional[str] = None


# =============================================================================
# ENDPOINTS - HEALTH & STATUS
# =============================================================================

@app.get("/health")
async def health_check():
    """Endpoint de health check para Docker y load balancers."""
    return {
        "status": "healthy",
        "service": "fairhouse-backend",
        "version": ApiConfig.VERSION,
        "timestamp": time.time()
    }


@app.get("/")
async def root():
    return {
        "message": "Fairhouse API",
        "docs": "/docs",
        "health": "/health",
        "websocket": "/socket.io",
        "version": ApiConfig.VERSION
    }


@app.get("/api/v1/status")
async def server_status(engine: CasinoEngine = Depends(get_engine)):
    """Estado detallado del servidor."""
    initialized = engine.casino_address in engine.store
    return {
        "server": "online",
        "casino_initialized": initialized,
        "casino_operational": engine.get_casino().is_operational() if initialized else False,
        "custody": engine.custody.get_summary(),
        "archive_enabled": get_archive() is not None,
        "timestamp": time.time()
    }


# =============================================================================
# ENDPOINTS - CASINO
# =============================================================================

@app.get("/api/v1/casino")
async def casino_report(engine: CasinoEngine = Depends(get_engine)):
    """Configuración, estadísticas y saldos de vault/tesorería."""
    return engine.casino_report()


@app.get("/api/v1/games/types")
async def list_game_types():
    """Juegos disponibles y sus multiplicadores (puntos básicos)."""
    return {
        "games": [
            {"type": GameType.COIN_FLIP.value, "prediction": "[side] 0 o 1",
             "multiplier": CasinoConstants.COINFLIP_PAYOUT},
            {"type": GameType.DICE_ROLL.value, "prediction": "[target, direction] 0=under, 1=over",
             "max_multiplier": CasinoConstants.DICE_MAX_PAYOUT},
            {"type": GameType.SLOTS.value, "prediction": "[]",
             "max_multiplier": CasinoConstants.SLOTS_MAX_PAYOUT},
            {"type": GameType.ROULETTE.value, "prediction": "[number] 0-36",
             "multiplier": CasinoConstants.ROULETTE_STRAIGHT_PAYOUT},
        ],
        "unsupported_payouts": [
            GameType.BLACKJACK.value, GameType.POKER.value, GameType.LOTTERY.value, GameType.SPORTS_BET.value,
        ],
    }


# =============================================================================
# ENDPOINTS - GAMES
# =============================================================================

@app.post("/api/v1/games", status_code=201)
async def create_game(
    request: CreateGameRequest,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    game_id = engine.create_game(
        caller,
        request.game_type,
        request.bet_amount,
        WagerValidator.parse_prediction(request.prediction),
        request.client_seed,
        request.server_seed_hash,
    )
    game = engine.get_game(game_id)
    await publish_game('game:created', game)
    return {"game_id": game_id, "game": game.to_dict()}


@app.get("/api/v1/games")
async def list_games(
    player: Optional[str] = Query(None),
    status: Optional[GameStatus] = Query(None),
    engine: CasinoEngine = Depends(get_engine)
):
    games = engine.list_games(player=player, status=status)
    return {"games": [g.to_dict() for g in games], "total": len(games)}


@app.get("/api/v1/games/{game_id}")
async def get_game(game_id: str, engine: CasinoEngine = Depends(get_engine)):
    return engine.get_game(game_id).to_dict()


@app.post("/api/v1/games/{game_id}/resolve")
async def resolve_game(
    game_id: str,
    request: ResolveGameRequest,
    engine: CasinoEngine = Depends(get_engine)
):
    """
    Revela el server seed. Cualquiera puede llamarlo: si el seed no coincide
    con el hash comprometido responde 422.
    """
    result = engine.resolve_game(game_id, request.server_seed, request.nonce)
    game = engine.get_game(game_id)
    await publish_resolution(game)
    return {
        "game": game.to_dict(),
        "result": result.to_dict(),
        "summary": describe_outcome(game.game_type, result.outcome),
    }


@app.post("/api/v1/games/{game_id}/claim")
async def claim_winnings(
    game_id: str,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    payout = engine.claim_winnings(caller, game_id)
    game = engine.get_game(game_id)
    await publish_game('game:claimed', game)
    return {"game_id": game_id, "payout": payout}


@app.post("/api/v1/games/{game_id}/cancel")
async def cancel_game(
    game_id: str,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    game = engine.cancel_game(caller, game_id)
    await publish_game('game:cancelled', game)
    return game.to_dict()


@app.post("/api/v1/games/{game_id}/expire")
async def expire_game(game_id: str, engine: CasinoEngine = Depends(get_engine)):
    game = engine.expire_game(game_id)
    await publish_game('game:expired', game)
    return game.to_dict()


@app.post("/api/v1/fairness/verify")
async def verify_fairness(request: VerifyRequest):
    """
    Recalcula un resultado a partir de los valores revelados.
    Permite a cualquiera auditar un juego sin confiar en el servidor.
    """
    commitment = ProvableFairData.commit(request.server_seed_hash, request.client_seed)
    verified = commitment.verify(request.server_seed)
    digest = commitment.derive_outcome(request.server_seed, request.nonce)
    response = {"verified": verified, "digest": digest.hex()}
    if request.game_type:
        game_type = GameType.parse(request.game_type)
        outcome = resolve_outcome(game_type, digest)
        response["outcome"] = list(outcome)
        response["summary"] = describe_outcome(game_type, outcome)
    return response


# =============================================================================
# ENDPOINTS - PLAYERS
# =============================================================================

@app.post("/api/v1/players", status_code=201)
async def initialize_player(
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    profile = engine.initialize_player(caller)
    await publish_player(profile)
    return profile.to_dict()


@app.get("/api/v1/players/{player}")
async def get_player(player: str, engine: CasinoEngine = Depends(get_engine)):
    return engine.get_player(player).to_dict()


@app.post("/api/v1/players/stats")
async def update_player_stats(
    request: PlayerStatsDelta,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    profile = engine.update_player_stats(
        caller,
        request.games_played,
        request.total_wagered,
        request.total_won,
        player=request.player,
    )
    await publish_player(profile)
    return profile.to_dict()


@app.get("/api/v1/custody/{account}/balance")
async def get_balance(account: str, engine: CasinoEngine = Depends(get_engine)):
    return {"account": account, "balance": engine.custody.balance_of(account)}


# =============================================================================
# ENDPOINTS - TOURNAMENTS
# =============================================================================

@app.get("/api/v1/tournaments/{tournament_id}")
async def get_tournament(tournament_id: str, engine: CasinoEngine = Depends(get_engine)):
    return engine.get_tournament(tournament_id).to_dict()


@app.post("/api/v1/tournaments/{tournament_id}/join")
async def join_tournament(
    tournament_id: str,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    tournament = engine.join_tournament(caller, tournament_id)
    await publish_tournament('tournament:joined', tournament)
    return tournament.to_dict()


# =============================================================================
# INCLUIR ROUTERS DE ADMINISTRACIÓN
# =============================================================================

# Admin API (requiere ser la autoridad del casino)
app.include_router(admin_router, prefix="/api/v1")


# =============================================================================
# MONTAR SOCKET.IO
# =============================================================================

# Socket.IO envuelve a FastAPI: /socket.io lo atiende Socket.IO, el resto FastAPI
combined_app = create_socket_app(app)


if __name__ == "__main__":
    import uvicorn

    # python -m backend.app.main
    uvicorn.run(combined_app, host=ApiConfig.HOST, port=ApiConfig.PORT)
