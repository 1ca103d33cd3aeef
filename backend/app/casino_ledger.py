"""
=============================================================================
FAIRHOUSE - Libro del Casino (Configuración, Economía y Estadísticas)
=============================================================================
Todas las tasas en puntos básicos (10000 = 100%), todos los montos enteros
en la unidad mínima del token.

- house_edge(bet)   = bet * house_edge / 10000
- treasury_fee(bet) = bet * treasury_fee / 10000
- max_payout        = bruto - house_edge - treasury_fee (piso en cero)

Las estadísticas acumulan con aritmética saturante; total_profit es con
signo y puede ser negativo. Los ratios en float solo existen al reportar.
=============================================================================
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional

from .arithmetic import (
    U32_MAX,
    basis_points_of,
    checked_mul,
    saturating_add,
    saturating_add_signed,
    saturating_sub,
)
from .config import CasinoConstants
from .errors import CasinoArithmeticError, CasinoErrorCode, ValidationError


# =============================================================================
# ESTADÍSTICAS
# =============================================================================

@dataclass
class CasinoStats:
    """Contadores acumulados del casino."""
    total_games: int = 0
    total_volume: int = 0
    total_profit: int = 0            # Con signo (i64)
    total_payouts: int = 0
    active_players: int = 0          # u32
    house_edge_collected: int = 0
    treasury_fees_collected: int = 0


@dataclass
class PlayerStats:
    """
    Perfil estadístico de un jugador.
    current_streak > 0 es racha ganadora, < 0 racha perdedora.
    """
    address: str
    player: str
    games_played: int = 0
    total_wagered: int = 0
    total_won: int = 0
    biggest_win: int = 0
    current_streak: int = 0
    best_streak: int = 0
    level: int = 1
    experience: int = 0
    created_at: int = 0
    updated_at: int = 0

    def record_game(self, bet_amount: int, payout: int, now: int) -> None:
        """Registra un juego resuelto (rachas, mayor premio, experiencia)."""
        self.games_played = saturating_add(self.games_played, 1)
        self.total_wagered = saturating_add(self.total_wagered, bet_amount)
        self.total_won = saturating_add(self.total_won, payout)

        if payout > 0:
            self.biggest_win = max(self.biggest_win, payout)
            self.current_streak = self.current_streak + 1 if self.current_streak > 0 else 1
        else:
            self.current_streak = self.current_streak - 1 if self.current_streak < 0 else -1
        self.best_streak = max(self.best_streak, self.current_streak)

        self._gain_experience(1, now)

    def apply_delta(self, games_played: int, total_wagered: int, total_won: int, now: int) -> None:
        """Suma incrementos explícitos (operación update_player_stats)."""
        if min(games_played, total_wagered, total_won) < 0:
            raise CasinoArithmeticError(CasinoErrorCode.ARITHMETIC_UNDERFLOW, "stat deltas must be non-negative")
        self.games_played = saturating_add(self.games_played, games_played)
        self.total_wagered = saturating_add(self.total_wagered, total_wagered)
        self.total_won = saturating_add(self.total_won, total_won)
        self._gain_experience(games_played, now)

    def _gain_experience(self, games: int, now: int) -> None:
        self.experience = saturating_add(self.experience, games * CasinoConstants.XP_PER_GAME)
        self.level = 1 + self.experience // CasinoConstants.XP_PER_LEVEL
        self.updated_at = now

    @property
    def net_result(self) -> int:
        return self.total_won - self.total_wagered

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["net_result"] = self.net_result
        return data


# =============================================================================
# CASINO
# =============================================================================

@dataclass
class Casino:
    """Configuración y estadísticas del casino (uno por despliegue)."""
    address: str
    authority: str
    token_mint: str
    treasury: str
    vault: str
    house_edge: int                  # Puntos básicos (50-1000)
    min_bet: int
    max_bet: int
    treasury_fee: int                # Puntos básicos (<= 500)
    is_active: bool = True
    is_paused: bool = False
    stats: CasinoStats = field(default_factory=CasinoStats)
    created_at: int = 0
    updated_at: int = 0

    # Contadores para derivar direcciones de juegos y torneos
    game_count: int = 0
    tournament_count: int = 0

    # -------------------------------------------------------------------------
    # Validación de configuración
    # -------------------------------------------------------------------------

    def validate_config(self) -> None:
        """
        Raises:
            ValidationError: INVALID_HOUSE_EDGE, INVALID_TREASURY_FEE o
            INVALID_CONFIGURATION (límites de apuesta)
        """
        if not CasinoConstants.MIN_HOUSE_EDGE <= self.house_edge <= CasinoConstants.MAX_HOUSE_EDGE:
            raise ValidationError(CasinoErrorCode.INVALID_HOUSE_EDGE, f"house_edge={self.house_edge}")
        if not 0 <= self.treasury_fee <= CasinoConstants.MAX_TREASURY_FEE:
            raise ValidationError(CasinoErrorCode.INVALID_TREASURY_FEE, f"treasury_fee={self.treasury_fee}")
        if self.min_bet <= 0 or self.min_bet > self.max_bet:
            raise ValidationError(
                CasinoErrorCode.INVALID_CONFIGURATION,
                f"min_bet={self.min_bet} max_bet={self.max_bet}"
            )

    def apply_config_update(
        self,
        now: int,
        house_edge: Optional[int] = None,
        min_bet: Optional[int] = None,
        max_bet: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_paused: Optional[bool] = None
    ) -> None:
        """Aplica solo los campos presentes; valida antes de escribir."""
        changes: Dict[str, Any] = {}
        if house_edge is not None:
            changes["house_edge"] = house_edge
        if min_bet is not None:
            changes["min_bet"] = min_bet
        if max_bet is not None:
            changes["max_bet"] = max_bet
        if is_active is not None:
            changes["is_active"] = is_active
        if is_paused is not None:
            changes["is_paused"] = is_paused

        candidate = replace(self, **changes)
        candidate.validate_config()

        for name, value in changes.items():
            setattr(self, name, value)
        self.updated_at = now

    def pause(self, now: int) -> None:
        self.is_paused = True
        self.updated_at = now

    def is_operational(self) -> bool:
        return self.is_active and not self.is_paused

    # -------------------------------------------------------------------------
    # Economía
    # -------------------------------------------------------------------------

    def calculate_house_edge(self, bet_amount: int) -> int:
        return basis_points_of(bet_amount, self.house_edge)

    def calculate_treasury_fee(self, bet_amount: int) -> int:
        return basis_points_of(bet_amount, self.treasury_fee)

    def calculate_max_payout(self, bet_amount: int, multiplier: int) -> int:
        gross_payout = checked_mul(bet_amount, multiplier) // CasinoConstants.BASIS_POINTS
        house_edge = self.calculate_house_edge(bet_amount)
        treasury_fee = self.calculate_treasury_fee(bet_amount)
        return saturating_sub(saturating_sub(gross_payout, house_edge), treasury_fee)

    # -------------------------------------------------------------------------
    # Estadísticas
    # -------------------------------------------------------------------------

    def update_stats(
        self,
        bet_amount: int,
        payout: int,
        house_edge_taken: int,
        treasury_fee_taken: int,
        now: int
    ) -> None:
        stats = self.stats
        stats.total_games = saturating_add(stats.total_games, 1)
        stats.total_volume = saturating_add(stats.total_volume, bet_amount)
        stats.total_payouts = saturating_add(stats.total_payouts, payout)
        stats.house_edge_collected = saturating_add(stats.house_edge_collected, house_edge_taken)
        stats.treasury_fees_collected = saturating_add(stats.treasury_fees_collected, treasury_fee_taken)

        # Ganancia = house edge - pagos (puede ser negativa)
        stats.total_profit = saturating_add_signed(stats.total_profit, house_edge_taken - payout)

        self.updated_at = now

    def register_player(self, now: int) -> None:
        self.stats.active_players = saturating_add(self.stats.active_players, 1, limit=U32_MAX)
        self.updated_at = now

    def get_profit_margin(self) -> float:
        """Margen de ganancia en porcentaje; 0.0 sin volumen."""
        if self.stats.total_volume == 0:
            return 0.0
        return (self.stats.total_profit / self.stats.total_volume) * 100.0

    def get_payout_ratio(self) -> float:
        """Ratio de pagos en porcentaje; 0.0 sin volumen."""
        if self.stats.total_volume == 0:
            return 0.0
        return (self.stats.total_payouts / self.stats.total_volume) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["profit_margin"] = round(self.get_profit_margin(), 4)
        data["payout_ratio"] = round(self.get_payout_ratio(), 4)
        data["is_operational"] = self.is_operational()
        return data
