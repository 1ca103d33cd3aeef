"""
=============================================================================
FAIRHOUSE - Catálogo de Errores
=============================================================================
Cada fallo se reporta con un código estable y con nombre propio, nunca con
un error genérico. Así el cliente puede distinguir entre "prueba otro monto",
"este juego no se puede resolver ahora" y "falló la verificación de equidad".

Categorías:
- Validación, Estado, Equidad, Autorización, Recursos, Aritmética,
  Torneos y Almacenamiento
=============================================================================
"""

from enum import Enum
from typing import Optional


class CasinoErrorCode(str, Enum):
    """Códigos de error del motor de apuestas."""
    # Validación
    BET_TOO_SMALL = "BET_TOO_SMALL"
    BET_TOO_LARGE = "BET_TOO_LARGE"
    INVALID_HOUSE_EDGE = "INVALID_HOUSE_EDGE"
    INVALID_TREASURY_FEE = "INVALID_TREASURY_FEE"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_PREDICTION = "INVALID_PREDICTION"
    INVALID_SERVER_SEED = "INVALID_SERVER_SEED"
    INVALID_CLIENT_SEED = "INVALID_CLIENT_SEED"
    INVALID_GAME_TYPE = "INVALID_GAME_TYPE"
    INVALID_NONCE = "INVALID_NONCE"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"

    # Estado
    CASINO_NOT_ACTIVE = "CASINO_NOT_ACTIVE"
    CASINO_PAUSED = "CASINO_PAUSED"
    CANNOT_RESOLVE_GAME = "CANNOT_RESOLVE_GAME"
    CANNOT_CLAIM_WINNINGS = "CANNOT_CLAIM_WINNINGS"
    CANNOT_CANCEL_GAME = "CANNOT_CANCEL_GAME"
    GAME_NOT_EXPIRED = "GAME_NOT_EXPIRED"
    CANNOT_EXPIRE_GAME = "CANNOT_EXPIRE_GAME"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Equidad
    PROVABLE_FAIRNESS_VERIFICATION_FAILED = "PROVABLE_FAIRNESS_VERIFICATION_FAILED"

    # Autorización
    UNAUTHORIZED = "UNAUTHORIZED"

    # Recursos
    INSUFFICIENT_VAULT_FUNDS = "INSUFFICIENT_VAULT_FUNDS"
    TOKEN_TRANSFER_FAILED = "TOKEN_TRANSFER_FAILED"

    # Aritmética
    ARITHMETIC_OVERFLOW = "ARITHMETIC_OVERFLOW"
    ARITHMETIC_UNDERFLOW = "ARITHMETIC_UNDERFLOW"

    # Torneos
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    TOURNAMENT_NOT_STARTED = "TOURNAMENT_NOT_STARTED"
    TOURNAMENT_ENDED = "TOURNAMENT_ENDED"
    ALREADY_JOINED_TOURNAMENT = "ALREADY_JOINED_TOURNAMENT"
    INVALID_TOURNAMENT_ENTRY_FEE = "INVALID_TOURNAMENT_ENTRY_FEE"
    CANNOT_FINALIZE_TOURNAMENT = "CANNOT_FINALIZE_TOURNAMENT"
    INVALID_PAYOUT_CALCULATION = "INVALID_PAYOUT_CALCULATION"

    # Almacenamiento
    ACCOUNT_ALREADY_INITIALIZED = "ACCOUNT_ALREADY_INITIALIZED"
    ACCOUNT_NOT_INITIALIZED = "ACCOUNT_NOT_INITIALIZED"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


ERROR_MESSAGES = {
    CasinoErrorCode.BET_TOO_SMALL: "Bet amount is too small",
    CasinoErrorCode.BET_TOO_LARGE: "Bet amount is too large",
    CasinoErrorCode.INVALID_HOUSE_EDGE: "Invalid house edge percentage",
    CasinoErrorCode.INVALID_TREASURY_FEE: "Invalid treasury fee percentage",
    CasinoErrorCode.INVALID_CONFIGURATION: "Invalid configuration",
    CasinoErrorCode.INVALID_AMOUNT: "Invalid amount",
    CasinoErrorCode.INVALID_PREDICTION: "Invalid prediction format",
    CasinoErrorCode.INVALID_SERVER_SEED: "Invalid server seed",
    CasinoErrorCode.INVALID_CLIENT_SEED: "Invalid client seed",
    CasinoErrorCode.INVALID_GAME_TYPE: "Invalid game type",
    CasinoErrorCode.INVALID_NONCE: "Invalid nonce",
    CasinoErrorCode.INVALID_TIMESTAMP: "Invalid timestamp",
    CasinoErrorCode.CASINO_NOT_ACTIVE: "Casino is not active",
    CasinoErrorCode.CASINO_PAUSED: "Casino is paused",
    CasinoErrorCode.CANNOT_RESOLVE_GAME: "Game cannot be resolved",
    CasinoErrorCode.CANNOT_CLAIM_WINNINGS: "Cannot claim winnings",
    CasinoErrorCode.CANNOT_CANCEL_GAME: "Game cannot be cancelled",
    CasinoErrorCode.GAME_NOT_EXPIRED: "Game has not expired",
    CasinoErrorCode.CANNOT_EXPIRE_GAME: "Cannot expire game",
    CasinoErrorCode.INVALID_STATE_TRANSITION: "Invalid state transition",
    CasinoErrorCode.PROVABLE_FAIRNESS_VERIFICATION_FAILED: "Provable fairness verification failed",
    CasinoErrorCode.UNAUTHORIZED: "Unauthorized access",
    CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS: "Insufficient funds in vault",
    CasinoErrorCode.TOKEN_TRANSFER_FAILED: "Token transfer failed",
    CasinoErrorCode.ARITHMETIC_OVERFLOW: "Arithmetic overflow",
    CasinoErrorCode.ARITHMETIC_UNDERFLOW: "Arithmetic underflow",
    CasinoErrorCode.TOURNAMENT_FULL: "Tournament is full",
    CasinoErrorCode.TOURNAMENT_NOT_STARTED: "Tournament has not started",
    CasinoErrorCode.TOURNAMENT_ENDED: "Tournament has ended",
    CasinoErrorCode.ALREADY_JOINED_TOURNAMENT: "Already joined tournament",
    CasinoErrorCode.INVALID_TOURNAMENT_ENTRY_FEE: "Invalid tournament entry fee",
    CasinoErrorCode.CANNOT_FINALIZE_TOURNAMENT: "Cannot finalize tournament",
    CasinoErrorCode.INVALID_PAYOUT_CALCULATION: "Invalid payout calculation",
    CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED: "Account already initialized",
    CasinoErrorCode.ACCOUNT_NOT_INITIALIZED: "Account not initialized",
    CasinoErrorCode.GAME_NOT_FOUND: "Game not found",
    CasinoErrorCode.PLAYER_NOT_FOUND: "Player not found",
    CasinoErrorCode.TOURNAMENT_NOT_FOUND: "Tournament not found",
    CasinoErrorCode.CONCURRENT_MODIFICATION: "Concurrent modification detected",
}


# =============================================================================
# JERARQUÍA DE EXCEPCIONES
# =============================================================================

class CasinoError(Exception):
    """
    Error base del motor. Lleva el código y un mensaje legible.
    La categoría la define la subclase.
    """
    category = "casino"

    def __init__(self, code: CasinoErrorCode, detail: Optional[str] = None):
        self.code = code
        self.message = ERROR_MESSAGES.get(code, code.value)
        self.detail = detail
        text = f"{code.value}: {self.message}"
        if detail:
            text = f"{text} ({detail})"
        super().__init__(text)

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message, "category": self.category}
        if self.detail:
            data["detail"] = self.detail
        return data


class ValidationError(CasinoError):
    """Entrada fuera de rango o mal formada."""
    category = "validation"


class StateError(CasinoError):
    """Transición no permitida desde el estado actual."""
    category = "state"


class FairnessError(CasinoError):
    """El seed revelado no coincide con el compromiso."""
    category = "fairness"


class AuthorizationError(CasinoError):
    category = "authorization"


class ResourceError(CasinoError):
    """Fondos insuficientes o transferencia fallida en custodia."""
    category = "resource"


class CasinoArithmeticError(CasinoError):
    category = "arithmetic"


class TournamentError(CasinoError):
    category = "tournament"


class StorageError(CasinoError):
    """Registro inexistente, duplicado o bloqueado."""
    category = "storage"
