"""
=============================================================================
FAIRHOUSE - Validador de Apuestas
=============================================================================
Verificación previa a la creación de un juego. Predicados puros sobre la
configuración del casino: no modifica nada.

Orden de verificación:
1. Casino activo y no pausado
2. Monto dentro de [min_bet, max_bet]
3. Predicción bien formada para el tipo de juego
4. Client seed y hash del server seed con formato válido
=============================================================================
"""

import string

from .casino_ledger import Casino
from .config import CasinoConstants
from .errors import CasinoErrorCode, StateError, ValidationError
from .payout_engine import GameType


_HEX_DIGITS = set(string.digits + "abcdef")


class WagerValidator:
    """Reglas de admisión de apuestas."""

    @classmethod
    def validate_bet(cls, casino: Casino, amount: int) -> None:
        """
        Raises:
            ValidationError: BET_TOO_SMALL / BET_TOO_LARGE
        """
        if amount < casino.min_bet:
            raise ValidationError(CasinoErrorCode.BET_TOO_SMALL, f"{amount} < {casino.min_bet}")
        if amount > casino.max_bet:
            raise ValidationError(CasinoErrorCode.BET_TOO_LARGE, f"{amount} > {casino.max_bet}")

    @classmethod
    def ensure_operational(cls, casino: Casino) -> None:
        """
        Raises:
            StateError: CASINO_NOT_ACTIVE (se revisa primero) o CASINO_PAUSED
        """
        if not casino.is_active:
            raise StateError(CasinoErrorCode.CASINO_NOT_ACTIVE)
        if casino.is_paused:
            raise StateError(CasinoErrorCode.CASINO_PAUSED)

    @classmethod
    def parse_prediction(cls, values) -> bytes:
        """
        Convierte la predicción recibida por la red (lista de enteros) a bytes.

        Raises:
            ValidationError: INVALID_PREDICTION si no es una lista de enteros 0-255
        """
        if not isinstance(values, (list, tuple)):
            raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "prediction must be a list of bytes")
        if any(isinstance(v, bool) or not isinstance(v, int) or v < 0 or v > 255 for v in values):
            raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "prediction bytes must be 0-255")
        return bytes(values)

    @classmethod
    def validate_prediction(cls, game_type: GameType, prediction: bytes) -> None:
        if len(prediction) > CasinoConstants.MAX_PREDICTION_LEN:
            raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "prediction longer than 256 bytes")

        if game_type in (GameType.COIN_FLIP, GameType.ROULETTE) and not prediction:
            raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, f"{game_type.value} needs 1 byte")
        if game_type == GameType.DICE_ROLL and len(prediction) < 2:
            raise ValidationError(CasinoErrorCode.INVALID_PREDICTION, "dice roll needs [target, direction]")

    @classmethod
    def validate_client_seed(cls, client_seed: str) -> None:
        if not client_seed or len(client_seed) > CasinoConstants.MAX_CLIENT_SEED_LEN:
            raise ValidationError(CasinoErrorCode.INVALID_CLIENT_SEED)

    @classmethod
    def validate_server_seed_hash(cls, server_seed_hash: str) -> None:
        # SHA-256 en hex minúsculas; cualquier otra forma nunca verificaría
        if len(server_seed_hash) != CasinoConstants.SERVER_SEED_HASH_LEN:
            raise ValidationError(CasinoErrorCode.INVALID_SERVER_SEED, "hash must be 64 hex characters")
        if not set(server_seed_hash) <= _HEX_DIGITS:
            raise ValidationError(CasinoErrorCode.INVALID_SERVER_SEED, "hash must be lowercase hex")

    @classmethod
    def validate_new_game(
        cls,
        casino: Casino,
        game_type: GameType,
        amount: int,
        prediction: bytes,
        client_seed: str,
        server_seed_hash: str
    ) -> None:
        """Ejecuta todas las verificaciones en orden; la primera que falla se reporta."""
        cls.ensure_operational(casino)
        cls.validate_bet(casino, amount)
        cls.validate_prediction(game_type, prediction)
        cls.validate_client_seed(client_seed)
        cls.validate_server_seed_hash(server_seed_hash)
