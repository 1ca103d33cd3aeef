"""
=============================================================================
FAIRHOUSE - Endpoints de Administración
=============================================================================
API REST para la autoridad del casino.
Incluye:
- Inicialización y configuración del casino
- Pausa de emergencia y retiro de tesorería
- Creación y cierre de torneos
- Fondeo de cuentas en el libro de custodia de referencia
- Verificación de integridad (diario de custodia y archivo)

La identidad del llamador llega en el header X-Caller-Id. El motor vuelve
a verificar la autoridad en cada operación.
=============================================================================
"""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from .arithmetic import U32_MAX, U64_MAX
from .config import ApiConfig, CasinoConstants
from .engine import CasinoEngine
from .errors import AuthorizationError, CasinoErrorCode
from .services import get_archive, get_engine
from .tournament import Tournament
from .websocket_handler import publish_casino, publish_tournament

router = APIRouter(prefix="/admin", tags=["Admin"])


# =============================================================================
# SECURITY
# =============================================================================

async def get_caller(x_caller_id: str = Header(..., min_length=1, max_length=128)) -> str:
    """Identidad del llamador (header X-Caller-Id)."""
    return x_caller_id


async def get_current_admin(
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
) -> str:
    """
    Verifica que el llamador es la autoridad del casino.
    """
    casino = engine.get_casino()
    if caller != casino.authority:
        raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "casino authority required")
    return caller


# =============================================================================
# SCHEMAS
# =============================================================================

class InitializeCasinoRequest(BaseModel):
    """Parámetros iniciales del casino (puntos básicos)."""
    house_edge: int = Field(..., ge=0, le=CasinoConstants.BASIS_POINTS)
    min_bet: int = Field(..., ge=0, le=U64_MAX)
    max_bet: int = Field(..., ge=0, le=U64_MAX)
    treasury_fee: int = Field(..., ge=0, le=CasinoConstants.BASIS_POINTS)
    token_mint: str = Field("SOL", min_length=1, max_length=64)


class CasinoConfigUpdate(BaseModel):
    """Solo se aplican los campos presentes."""
    house_edge: Optional[int] = Field(None, ge=0, le=CasinoConstants.BASIS_POINTS)
    min_bet: Optional[int] = Field(None, ge=0, le=U64_MAX)
    max_bet: Optional[int] = Field(None, ge=0, le=U64_MAX)
    is_active: Optional[bool] = None
    is_paused: Optional[bool] = None


class WithdrawRequest(BaseModel):
    amount: int = Field(..., gt=0, le=U64_MAX)


class DepositRequest(BaseModel):
    """Fondeo de una cuenta en el libro de custodia."""
    account: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., gt=0, le=U64_MAX)


class CreateTournamentRequest(BaseModel):
    entry_fee: int = Field(..., ge=0, le=U64_MAX)
    max_players: int = Field(..., ge=0, le=U32_MAX)
    start_time: int
    duration: int


class FinalizeTournamentRequest(BaseModel):
    """Reparto decidido fuera del motor: {jugador: monto}."""
    payouts: Dict[str, int] = Field(default_factory=dict)


class ManualPrizeSplit:
    """Distribuidor que devuelve el reparto enviado por la autoridad."""

    def __init__(self, payouts: Dict[str, int]):
        self.payouts = payouts

    def distribute(self, tournament: Tournament) -> Dict[str, int]:
        return dict(self.payouts)


# =============================================================================
# ENDPOINTS: CASINO
# =============================================================================

@router.post("/casino", status_code=status.HTTP_201_CREATED)
async def initialize_casino(
    request: InitializeCasinoRequest,
    caller: str = Depends(get_caller),
    engine: CasinoEngine = Depends(get_engine)
):
    """
    Crea el casino. Solo la identidad configurada en CASINO_AUTHORITY puede
    hacerlo; queda registrada como autoridad.
    """
    if caller != ApiConfig.CASINO_AUTHORITY:
        raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "not the configured casino authority")

    casino = engine.initialize_casino(
        caller,
        request.house_edge,
        request.min_bet,
        request.max_bet,
        request.treasury_fee,
        token_mint=request.token_mint,
    )
    await publish_casino(casino)
    return casino.to_dict()


@router.patch("/casino/config")
async def update_casino_config(
    request: CasinoConfigUpdate,
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    casino = engine.update_casino_config(
        admin,
        house_edge=request.house_edge,
        min_bet=request.min_bet,
        max_bet=request.max_bet,
        is_active=request.is_active,
        is_paused=request.is_paused,
    )
    await publish_casino(casino)
    return casino.to_dict()


@router.post("/casino/pause")
async def emergency_pause(
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    """Pausa de emergencia: bloquea nuevas apuestas."""
    casino = engine.emergency_pause(admin)
    await publish_casino(casino)
    return casino.to_dict()


@router.post("/treasury/withdraw")
async def withdraw_treasury(
    request: WithdrawRequest,
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    remaining = engine.withdraw_treasury(admin, request.amount)
    return {
        "withdrawn": request.amount,
        "destination": admin,
        "treasury_balance": remaining,
    }


# =============================================================================
# ENDPOINTS: CUSTODIA
# =============================================================================

@router.post("/custody/deposit")
async def deposit_funds(
    request: DepositRequest,
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    """Acredita fondos a una cuenta (jugador o vault) en el libro de referencia."""
    entry = engine.custody.deposit(request.account, request.amount, memo=f"deposit by {admin}")
    return {
        "account": request.account,
        "balance": engine.custody.balance_of(request.account),
        "entry": entry.to_dict(),
    }


@router.get("/custody/verify")
async def verify_custody_journal(
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    return engine.custody.verify_journal()


@router.get("/archive/verify")
async def verify_archive(admin: str = Depends(get_current_admin)):
    archive = get_archive()
    if archive is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archive disabled")
    return await archive.verify_integrity()


# =============================================================================
# ENDPOINTS: TORNEOS
# =============================================================================

@router.post("/tournaments", status_code=status.HTTP_201_CREATED)
async def create_tournament(
    request: CreateTournamentRequest,
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    tournament_id = engine.create_tournament(
        admin,
        request.entry_fee,
        request.max_players,
        request.start_time,
        request.duration,
    )
    tournament = engine.get_tournament(tournament_id)
    await publish_tournament('tournament:created', tournament)
    return tournament.to_dict()


@router.post("/tournaments/{tournament_id}/finalize")
async def finalize_tournament(
    tournament_id: str,
    request: FinalizeTournamentRequest,
    admin: str = Depends(get_current_admin),
    engine: CasinoEngine = Depends(get_engine)
):
    """
    Cierra el torneo. Sin reparto el pozo queda en el vault.
    """
    distributor = ManualPrizeSplit(request.payouts) if request.payouts else None
    payouts = engine.finalize_tournament(admin, tournament_id, distributor)
    tournament = engine.get_tournament(tournament_id)
    await publish_tournament('tournament:finalized', tournament)
    return {"tournament": tournament.to_dict(), "payouts": payouts}
