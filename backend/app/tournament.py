"""
=============================================================================
FAIRHOUSE - Torneos (Interfaz)
=============================================================================
Contabilidad de entrada/salida de un torneo con pozo de premios:

- create: fee de entrada, cupo, inicio y duración
- join: un ingreso por jugador, con cupo, antes del cierre
- finalize: una sola vez, después del cierre

El reparto del pozo NO se define aquí: lo hace un PrizeDistributor externo.
El manager solo verifica que el reparto vaya a participantes y no exceda
el pozo.
=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .arithmetic import U32_MAX, checked_add
from .config import CasinoConstants
from .errors import CasinoErrorCode, TournamentError, ValidationError


class TournamentStatus(str, Enum):
    CREATED = "CREATED"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


@dataclass
class Tournament:
    """Estado de un torneo."""
    address: str
    casino: str
    authority: str
    entry_fee: int
    max_players: int
    start_time: int
    end_time: int
    created_at: int
    status: TournamentStatus = TournamentStatus.CREATED
    participants: List[str] = field(default_factory=list)
    prize_pool: int = 0
    finalized_at: Optional[int] = None
    payouts: Dict[str, int] = field(default_factory=dict)

    @property
    def current_players(self) -> int:
        return len(self.participants)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "casino": self.casino,
            "authority": self.authority,
            "entry_fee": self.entry_fee,
            "max_players": self.max_players,
            "current_players": self.current_players,
            "participants": list(self.participants),
            "prize_pool": self.prize_pool,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status.value,
            "created_at": self.created_at,
            "finalized_at": self.finalized_at,
            "payouts": dict(self.payouts),
        }


class PrizeDistributor(Protocol):
    """Colaborador externo que decide el reparto del pozo."""

    def distribute(self, tournament: Tournament) -> Dict[str, int]:
        ...


class TournamentManager:
    """Pre y post-condiciones del ciclo de vida de un torneo."""

    @classmethod
    def create(
        cls,
        address: str,
        casino: str,
        authority: str,
        entry_fee: int,
        max_players: int,
        start_time: int,
        duration: int,
        now: int
    ) -> Tournament:
        if entry_fee <= 0:
            raise TournamentError(CasinoErrorCode.INVALID_TOURNAMENT_ENTRY_FEE)
        if not CasinoConstants.MIN_TOURNAMENT_PLAYERS <= max_players <= U32_MAX:
            raise ValidationError(CasinoErrorCode.INVALID_CONFIGURATION, f"max_players={max_players}")
        if duration <= 0 or duration > CasinoConstants.MAX_TOURNAMENT_DURATION:
            raise ValidationError(CasinoErrorCode.INVALID_TIMESTAMP, f"duration={duration}")
        if start_time < now:
            raise ValidationError(CasinoErrorCode.INVALID_TIMESTAMP, "start_time is in the past")

        return Tournament(
            address=address,
            casino=casino,
            authority=authority,
            entry_fee=entry_fee,
            max_players=max_players,
            start_time=start_time,
            end_time=start_time + duration,
            created_at=now,
        )

    @classmethod
    def refresh_status(cls, tournament: Tournament, now: int) -> None:
        """CREATED -> ACTIVE cuando llega start_time."""
        if tournament.status == TournamentStatus.CREATED and now >= tournament.start_time:
            tournament.status = TournamentStatus.ACTIVE

    @classmethod
    def join(cls, tournament: Tournament, player: str, now: int) -> None:
        """
        Registra al jugador y suma el fee al pozo.

        Raises:
            TournamentError: TOURNAMENT_ENDED, TOURNAMENT_FULL o
            ALREADY_JOINED_TOURNAMENT
        """
        cls.refresh_status(tournament, now)
        if tournament.status not in (TournamentStatus.CREATED, TournamentStatus.ACTIVE):
            raise TournamentError(CasinoErrorCode.TOURNAMENT_ENDED)
        if now >= tournament.end_time:
            raise TournamentError(CasinoErrorCode.TOURNAMENT_ENDED)
        if player in tournament.participants:
            raise TournamentError(CasinoErrorCode.ALREADY_JOINED_TOURNAMENT)
        if tournament.current_players >= tournament.max_players:
            raise TournamentError(CasinoErrorCode.TOURNAMENT_FULL)

        tournament.prize_pool = checked_add(tournament.prize_pool, tournament.entry_fee)
        tournament.participants.append(player)

    @classmethod
    def finalize(
        cls,
        tournament: Tournament,
        now: int,
        distributor: Optional[PrizeDistributor] = None
    ) -> Dict[str, int]:
        """
        Cierra el torneo una sola vez, después de end_time.

        Returns:
            Reparto {jugador: monto}; vacío si no hay distribuidor
        """
        if tournament.status in (TournamentStatus.FINISHED, TournamentStatus.CANCELLED):
            raise TournamentError(CasinoErrorCode.CANNOT_FINALIZE_TOURNAMENT, f"status={tournament.status.value}")
        if now < tournament.start_time:
            raise TournamentError(CasinoErrorCode.TOURNAMENT_NOT_STARTED)
        if now < tournament.end_time:
            raise TournamentError(CasinoErrorCode.CANNOT_FINALIZE_TOURNAMENT, "tournament still running")

        payouts: Dict[str, int] = {}
        if distributor is not None:
            payouts = dict(distributor.distribute(tournament))
            cls._check_payouts(tournament, payouts)

        tournament.payouts = payouts
        tournament.status = TournamentStatus.FINISHED
        tournament.finalized_at = now
        return payouts

    @classmethod
    def _check_payouts(cls, tournament: Tournament, payouts: Dict[str, int]) -> None:
        total = 0
        for player, amount in payouts.items():
            if player not in tournament.participants or amount < 0:
                raise TournamentError(CasinoErrorCode.INVALID_PAYOUT_CALCULATION, f"bad payout for {player}")
            total += amount
        if total > tournament.prize_pool:
            raise TournamentError(
                CasinoErrorCode.INVALID_PAYOUT_CALCULATION,
                f"payouts {total} exceed prize pool {tournament.prize_pool}"
            )
