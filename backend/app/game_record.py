"""
=============================================================================
FAIRHOUSE - Registro de Juego (Máquina de Estados)
=============================================================================
Ciclo de vida de una apuesta:

    CREATED -> ACTIVE -> RESOLVING -> RESOLVED -> CLAIMED

Salidas laterales:
- CANCELLED desde CREATED o ACTIVE
- EXPIRED desde cualquier estado no terminal, pasado expires_at

Estados terminales: CLAIMED, CANCELLED, EXPIRED. Los juegos terminados no se
borran: quedan como registro de auditoría.

Todas las transiciones reciben "now" del reloj inyectado.
=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import CasinoConstants
from .errors import CasinoErrorCode, StateError
from .fairness import ProvableFairData
from .payout_engine import GameResult, GameType


class GameStatus(str, Enum):
    """Estados de la máquina de estados finita (FSM)."""
    CREATED = "CREATED"        # Apuesta registrada, stake aún no confirmado
    ACTIVE = "ACTIVE"          # Stake en el vault, esperando la revelación
    RESOLVING = "RESOLVING"    # Reservado para resolución diferida
    RESOLVED = "RESOLVED"      # Resultado fijado
    CLAIMED = "CLAIMED"        # Premio pagado
    CANCELLED = "CANCELLED"    # Cancelado con reembolso
    EXPIRED = "EXPIRED"        # Vencido sin resolución


VALID_TRANSITIONS: Dict[GameStatus, List[GameStatus]] = {
    GameStatus.CREATED: [GameStatus.ACTIVE, GameStatus.RESOLVED, GameStatus.CANCELLED, GameStatus.EXPIRED],
    GameStatus.ACTIVE: [GameStatus.RESOLVING, GameStatus.RESOLVED, GameStatus.CANCELLED, GameStatus.EXPIRED],
    GameStatus.RESOLVING: [GameStatus.RESOLVED, GameStatus.EXPIRED],
    GameStatus.RESOLVED: [GameStatus.CLAIMED],
    GameStatus.CLAIMED: [],
    GameStatus.CANCELLED: [],
    GameStatus.EXPIRED: [],
}

TERMINAL_STATES = {GameStatus.CLAIMED, GameStatus.CANCELLED, GameStatus.EXPIRED}


@dataclass
class Game:
    """Una apuesta individual y su estado."""
    address: str
    player: str
    casino: str
    game_type: GameType
    bet_amount: int
    prediction: bytes
    provable_fair: ProvableFairData
    created_at: int
    expires_at: int
    session_id: int
    status: GameStatus = GameStatus.CREATED
    result: Optional[GameResult] = None
    resolved_at: Optional[int] = None
    claimed_at: Optional[int] = None

    @classmethod
    def open(
        cls,
        address: str,
        player: str,
        casino: str,
        game_type: GameType,
        bet_amount: int,
        prediction: bytes,
        provable_fair: ProvableFairData,
        session_id: int,
        now: int
    ) -> "Game":
        """Crea el juego en CREATED con vencimiento a MAX_GAME_DURATION."""
        return cls(
            address=address,
            player=player,
            casino=casino,
            game_type=game_type,
            bet_amount=bet_amount,
            prediction=bytes(prediction),
            provable_fair=provable_fair,
            created_at=now,
            expires_at=now + CasinoConstants.MAX_GAME_DURATION,
            session_id=session_id,
        )

    # =========================================================================
    # PREDICADOS
    # =========================================================================

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_be_resolved(self, now: int) -> bool:
        # CREATED cuenta igual que ACTIVE
        return self.status in (GameStatus.CREATED, GameStatus.ACTIVE) and not self.is_expired(now)

    def can_claim_winnings(self) -> bool:
        if self.status != GameStatus.RESOLVED or self.claimed_at is not None:
            return False
        return self.result is not None and self.result.payout > 0

    def can_be_cancelled(self) -> bool:
        return self.status in (GameStatus.CREATED, GameStatus.ACTIVE)

    def duration(self, now: int) -> int:
        """Segundos desde la creación hasta la resolución (o hasta ahora)."""
        if self.resolved_at is not None:
            return self.resolved_at - self.created_at
        return now - self.created_at

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    def _transition(self, new_status: GameStatus) -> None:
        if new_status not in VALID_TRANSITIONS[self.status]:
            raise StateError(
                CasinoErrorCode.INVALID_STATE_TRANSITION,
                f"{self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def activate(self, now: int) -> None:
        """CREATED -> ACTIVE una vez que el stake llegó al vault."""
        if self.status != GameStatus.CREATED or self.is_expired(now):
            raise StateError(CasinoErrorCode.INVALID_STATE_TRANSITION, f"cannot activate from {self.status.value}")
        self._transition(GameStatus.ACTIVE)

    def resolve(self, result: GameResult, now: int) -> None:
        if not self.can_be_resolved(now):
            raise StateError(CasinoErrorCode.CANNOT_RESOLVE_GAME, f"status={self.status.value}")
        self._transition(GameStatus.RESOLVED)
        self.result = result
        self.resolved_at = now

    def claim(self, now: int) -> int:
        """
        RESOLVED -> CLAIMED. Devuelve el monto a pagar.
        claimed_at es la guarda: un segundo claim siempre falla.
        """
        if not self.can_claim_winnings():
            raise StateError(CasinoErrorCode.CANNOT_CLAIM_WINNINGS, f"status={self.status.value}")
        payout = self.result.payout
        self._transition(GameStatus.CLAIMED)
        self.claimed_at = now
        return payout

    def cancel(self) -> None:
        if not self.can_be_cancelled():
            raise StateError(CasinoErrorCode.CANNOT_CANCEL_GAME, f"status={self.status.value}")
        self._transition(GameStatus.CANCELLED)

    def expire(self, now: int) -> None:
        if not self.is_expired(now):
            raise StateError(CasinoErrorCode.GAME_NOT_EXPIRED)
        if self.status in (GameStatus.RESOLVED, GameStatus.CLAIMED, GameStatus.CANCELLED, GameStatus.EXPIRED):
            raise StateError(CasinoErrorCode.CANNOT_EXPIRE_GAME, f"status={self.status.value}")
        self._transition(GameStatus.EXPIRED)

    # =========================================================================
    # SERIALIZACIÓN
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "player": self.player,
            "casino": self.casino,
            "game_type": self.game_type.value,
            "bet_amount": self.bet_amount,
            "prediction": list(self.prediction),
            "result": self.result.to_dict() if self.result is not None else None,
            "provable_fair": self.provable_fair.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at,
            "resolved_at": self.resolved_at,
            "claimed_at": self.claimed_at,
            "expires_at": self.expires_at,
            "session_id": self.session_id,
        }
