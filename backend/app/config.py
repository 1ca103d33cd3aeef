"""
=============================================================================
FAIRHOUSE - Configuración del Motor
=============================================================================
Constantes económicas y límites del casino (puntos básicos: 10000 = 100%),
más los valores de despliegue que se leen del entorno.
=============================================================================
"""

import os


class CasinoConstants:
    """Límites y multiplicadores del casino."""

    BASIS_POINTS = 10000

    # House edge y fee de tesorería (puntos básicos)
    MIN_HOUSE_EDGE = 50         # 0.5%
    MAX_HOUSE_EDGE = 1000       # 10%
    MAX_TREASURY_FEE = 500      # 5%

    # Duraciones (segundos)
    MAX_GAME_DURATION = 3600                # 1 hora
    MAX_TOURNAMENT_DURATION = 86400 * 7     # 1 semana

    # Multiplicadores por juego (puntos básicos)
    COINFLIP_PAYOUT = 19500             # 1.95x
    DICE_MAX_PAYOUT = 98000             # 9.8x
    DICE_RTP_BP = 9800                  # 98% RTP
    SLOTS_TRIPLE_SEVEN = 25000          # 25x
    SLOTS_TRIPLE = 10000                # 10x
    SLOTS_PAIR = 2000                   # 2x
    SLOTS_MAX_PAYOUT = 250000           # 25x
    BLACKJACK_PAYOUT = 20000            # 2x (sin modelo de pago todavía)
    ROULETTE_STRAIGHT_PAYOUT = 350000   # 35x

    # Formato de entradas
    MAX_PREDICTION_LEN = 256
    MAX_CLIENT_SEED_LEN = 64
    SERVER_SEED_HASH_LEN = 64

    # Progresión de jugadores
    XP_PER_GAME = 10
    XP_PER_LEVEL = 1000

    # Torneos
    MIN_TOURNAMENT_PLAYERS = 2


class ApiConfig:
    """Valores de despliegue (variables de entorno)."""

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./fairhouse.db")
    CASINO_AUTHORITY = os.getenv("CASINO_AUTHORITY", "casino-authority")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
    ARCHIVE_ENABLED = os.getenv("ARCHIVE_ENABLED", "false").lower() == "true"
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8000"))
    VERSION = "0.1.0"
