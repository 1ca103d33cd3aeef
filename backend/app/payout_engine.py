"""
=============================================================================
FAIRHOUSE - Motor de Pagos (Payout Engine)
=============================================================================
Función pura: (tipo de juego, predicción, bytes de resultado, house edge)
-> multiplicador y pago neto.

Principios:
- Multiplicadores en puntos básicos (10000 = 1.0x)
- El house edge se cobra sobre la apuesta, se gane o se pierda
- Pago neto = bruto - house edge, nunca negativo
- El fee de tesorería NO se calcula aquí (lo hace el CasinoLedger)
=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Tuple

from .arithmetic import basis_points_of, checked_mul, saturating_sub
from .config import CasinoConstants
from .errors import CasinoErrorCode, ValidationError


# =============================================================================
# TIPOS
# =============================================================================

class GameType(str, Enum):
    """Conjunto cerrado de juegos del casino."""
    COIN_FLIP = "COIN_FLIP"
    DICE_ROLL = "DICE_ROLL"
    SLOTS = "SLOTS"
    BLACKJACK = "BLACKJACK"
    ROULETTE = "ROULETTE"
    POKER = "POKER"
    LOTTERY = "LOTTERY"
    SPORTS_BET = "SPORTS_BET"

    @classmethod
    def parse(cls, value: str) -> "GameType":
        if not isinstance(value, str):
            raise ValidationError(CasinoErrorCode.INVALID_GAME_TYPE, repr(value))
        try:
            return cls(value.upper())
        except ValueError:
            raise ValidationError(CasinoErrorCode.INVALID_GAME_TYPE, value) from None


@dataclass(frozen=True)
class GameResult:
    """Resultado inmutable de un juego resuelto."""
    outcome: bytes
    multiplier: int          # Puntos básicos
    payout: int              # Pago neto al jugador
    house_edge_taken: int
    treasury_fee_taken: int = 0

    @property
    def is_win(self) -> bool:
        return self.payout > 0

    def to_dict(self) -> dict:
        return {
            "outcome": list(self.outcome),
            "multiplier": self.multiplier,
            "payout": self.payout,
            "house_edge_taken": self.house_edge_taken,
            "treasury_fee_taken": self.treasury_fee_taken,
        }


# =============================================================================
# EXTRACCIÓN DEL RESULTADO (digest -> bytes de juego)
# =============================================================================

def _coin_flip_outcome(digest: bytes) -> bytes:
    return bytes([digest[0] % 2])


def _dice_roll_outcome(digest: bytes) -> bytes:
    # Rango 1-100
    return bytes([(digest[0] % 100) + 1])


def _slots_outcome(digest: bytes) -> bytes:
    # Tres rodillos, 0-9 cada uno
    return bytes(b % 10 for b in digest[:3])


def _roulette_outcome(digest: bytes) -> bytes:
    # Ruleta europea: 0-36
    return bytes([digest[0] % 37])


def _raw_outcome(digest: bytes) -> bytes:
    # Juegos sin modelo propio: primeros 4 bytes tal cual
    return bytes(digest[:4])


_OUTCOME_HANDLERS: Dict[GameType, Callable[[bytes], bytes]] = {
    GameType.COIN_FLIP: _coin_flip_outcome,
    GameType.DICE_ROLL: _dice_roll_outcome,
    GameType.SLOTS: _slots_outcome,
    GameType.ROULETTE: _roulette_outcome,
}


def resolve_outcome(game_type: GameType, digest: bytes) -> bytes:
    """
    Convierte el digest SHA-256 en los bytes de resultado del juego.

    Args:
        game_type: Tipo de juego
        digest: Digest de 32 bytes derivado del compromiso

    Returns:
        Bytes de resultado (1 byte para coin flip, dados y ruleta; 3 para
        slots; 4 para el resto)
    """
    handler = _OUTCOME_HANDLERS.get(game_type, _raw_outcome)
    return handler(digest)


# =============================================================================
# TABLA DE PAGOS
# =============================================================================

def _coin_flip_multiplier(prediction: bytes, outcome: bytes) -> Tuple[bool, int]:
    if not prediction:
        raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "coin flip needs 1 byte")
    won = prediction[0] == outcome[0]
    return won, CasinoConstants.COINFLIP_PAYOUT if won else 0


def _dice_roll_multiplier(prediction: bytes, outcome: bytes) -> Tuple[bool, int]:
    # prediction = [target, direction]; direction 0 = under, otro = over
    if len(prediction) < 2:
        raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "dice roll needs [target, direction]")

    target, direction = prediction[0], prediction[1]
    result = outcome[0]
    won = result < target if direction == 0 else result > target
    if not won:
        return False, 0

    probability = target if direction == 0 else 100 - target
    if probability <= 0:
        return won, 0
    multiplier = (CasinoConstants.DICE_RTP_BP * 100) // probability
    return won, min(multiplier, CasinoConstants.DICE_MAX_PAYOUT)


def _slots_multiplier(prediction: bytes, outcome: bytes) -> Tuple[bool, int]:
    reel1, reel2, reel3 = outcome[0], outcome[1], outcome[2]

    if reel1 == reel2 == reel3:
        multiplier = CasinoConstants.SLOTS_TRIPLE_SEVEN if reel1 == 7 else CasinoConstants.SLOTS_TRIPLE
    elif reel1 == reel2 or reel2 == reel3 or reel1 == reel3:
        multiplier = CasinoConstants.SLOTS_PAIR
    else:
        multiplier = 0

    multiplier = min(multiplier, CasinoConstants.SLOTS_MAX_PAYOUT)
    return multiplier > 0, multiplier


def _roulette_multiplier(prediction: bytes, outcome: bytes) -> Tuple[bool, int]:
    # Pleno: un solo número
    if not prediction:
        raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "roulette needs 1 byte")
    won = prediction[0] == outcome[0]
    return won, CasinoConstants.ROULETTE_STRAIGHT_PAYOUT if won else 0


def _always_loses(prediction: bytes, outcome: bytes) -> Tuple[bool, int]:
    # Placeholder: blackjack, póker, lotería y deportes no tienen modelo de pago
    return False, 0


_PAYOUT_HANDLERS: Dict[GameType, Callable[[bytes, bytes], Tuple[bool, int]]] = {
    GameType.COIN_FLIP: _coin_flip_multiplier,
    GameType.DICE_ROLL: _dice_roll_multiplier,
    GameType.SLOTS: _slots_multiplier,
    GameType.ROULETTE: _roulette_multiplier,
}


def calculate_payout(
    game_type: GameType,
    prediction: bytes,
    outcome: bytes,
    bet_amount: int,
    house_edge_bp: int
) -> GameResult:
    """
    Calcula el multiplicador y el pago neto.

    Ejemplo Coin Flip acertado, apuesta 1000, house edge 200 bp:
        - house_edge_amount: 20
        - bruto: 1000 * 19500 / 10000 = 1950
        - neto: 1930

    Raises:
        ValidationError: predicción mal formada (INVALID_PREDICTION)
        CasinoArithmeticError: el producto excede u64
    """
    house_edge_amount = basis_points_of(bet_amount, house_edge_bp)

    handler = _PAYOUT_HANDLERS.get(game_type, _always_loses)
    won, multiplier = handler(prediction, outcome)

    gross_payout = 0
    if won:
        gross_payout = checked_mul(bet_amount, multiplier) // CasinoConstants.BASIS_POINTS

    net_payout = saturating_sub(gross_payout, house_edge_amount)

    return GameResult(
        outcome=bytes(outcome),
        multiplier=multiplier,
        payout=net_payout,
        house_edge_taken=house_edge_amount,
        treasury_fee_taken=0,
    )


def describe_outcome(game_type: GameType, outcome: bytes) -> str:
    """Resumen legible del resultado (logs y API)."""
    if game_type == GameType.COIN_FLIP:
        return "heads" if outcome[0] == 0 else "tails"
    if game_type == GameType.DICE_ROLL:
        return f"rolled {outcome[0]}"
    if game_type == GameType.SLOTS:
        return "-".join(str(reel) for reel in outcome[:3])
    if game_type == GameType.ROULETTE:
        return f"number {outcome[0]}"
    return outcome.hex()
