"""
=============================================================================
FAIRHOUSE - Modelos de Archivo de Auditoría (SQLAlchemy)
=============================================================================
Snapshots de los registros del casino para auditoría posterior.

NO es el almacén transaccional: el motor trabaja sobre el RecordStore y
el archivo solo guarda la última foto de cada registro.

Principios de Diseño:
- Montos u64 como Numeric(20, 0): cabe cualquier valor sin pérdida
- Cada fila lleva record_hash (SHA-256 del contenido) para detectar
  alteraciones directas en la base de datos
- Los juegos terminados nunca se borran
=============================================================================
"""

import hashlib
import json
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    event,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .app.game_record import GameStatus
from .app.payout_engine import GameType
from .app.tournament import TournamentStatus


# Precisión de montos: u64 completo (20 dígitos)
Amount = Numeric(20, 0)


# =============================================================================
# BASE DECLARATIVA
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Clase base para todos los modelos con soporte async."""
    pass


class IntegrityMixin:
    """Hash de contenido para detección de manipulación."""

    HASHED_FIELDS = ()

    record_hash: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    def compute_record_hash(self) -> str:
        data = {}
        for name in self.HASHED_FIELDS:
            value = getattr(self, name)
            if isinstance(value, Decimal):
                value = int(value)
            elif hasattr(value, "value"):
                value = value.value
            data[name] = value
        return hashlib.sha256(json.dumps(data, sort_keys=True, default=str).encode()).hexdigest()

    def verify_record_integrity(self) -> bool:
        """False si la fila fue modificada sin recalcular el hash."""
        return secrets.compare_digest(self.record_hash, self.compute_record_hash())


# =============================================================================
# TABLA: CASINOS
# =============================================================================

class ArchivedCasino(IntegrityMixin, Base):
    __tablename__ = "casinos"

    HASHED_FIELDS = (
        "address", "authority", "house_edge", "treasury_fee", "min_bet", "max_bet",
        "is_active", "is_paused", "total_games", "total_volume", "total_profit", "total_payouts",
    )

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    authority: Mapped[str] = mapped_column(String(128), nullable=False)
    token_mint: Mapped[str] = mapped_column(String(64), nullable=False)
    treasury: Mapped[str] = mapped_column(String(64), nullable=False)
    vault: Mapped[str] = mapped_column(String(64), nullable=False)

    # Configuración (puntos básicos)
    house_edge: Mapped[int] = mapped_column(Integer, nullable=False)
    treasury_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    min_bet: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    max_bet: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Estadísticas
    total_games: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    total_volume: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    total_profit: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)   # Con signo
    total_payouts: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    active_players: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    house_edge_collected: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    treasury_fees_collected: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("house_edge >= 50 AND house_edge <= 1000", name="check_house_edge_range"),
        CheckConstraint("treasury_fee >= 0 AND treasury_fee <= 500", name="check_treasury_fee_range"),
        CheckConstraint("min_bet > 0 AND min_bet <= max_bet", name="check_bet_limits"),
    )


# =============================================================================
# TABLA: GAMES (Registro de Apuestas)
# =============================================================================

class ArchivedGame(IntegrityMixin, Base):
    """
    Una apuesta con su compromiso de equidad.
    server_seed queda NULL hasta la resolución.
    """
    __tablename__ = "games"

    HASHED_FIELDS = (
        "address", "player", "game_type", "bet_amount", "prediction_hex", "status",
        "server_seed_hash", "client_seed", "nonce", "server_seed", "outcome_hex", "payout",
    )

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    player: Mapped[str] = mapped_column(String(128), nullable=False)
    casino: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    game_type: Mapped[GameType] = mapped_column(Enum(GameType), nullable=False)
    status: Mapped[GameStatus] = mapped_column(Enum(GameStatus), nullable=False)
    bet_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    prediction_hex: Mapped[str] = mapped_column(String(512), nullable=False)

    # Compromiso commit-reveal
    server_seed_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    client_seed: Mapped[str] = mapped_column(String(64), nullable=False)
    nonce: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    server_seed: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    # Resultado (NULL hasta resolver)
    outcome_hex: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    multiplier: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    payout: Mapped[Optional[Decimal]] = mapped_column(Amount, nullable=True)
    house_edge_taken: Mapped[Optional[Decimal]] = mapped_column(Amount, nullable=True)
    treasury_fee_taken: Mapped[Optional[Decimal]] = mapped_column(Amount, nullable=True)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    resolved_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    claimed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_games_player", "player"),
        Index("idx_games_status", "status"),
        CheckConstraint("bet_amount > 0", name="check_positive_bet"),
    )


# =============================================================================
# TABLA: PLAYER_STATS
# =============================================================================

class ArchivedPlayerStats(IntegrityMixin, Base):
    __tablename__ = "player_stats"

    HASHED_FIELDS = ("address", "player", "games_played", "total_wagered", "total_won", "experience")

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    player: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    games_played: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    total_wagered: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    total_won: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    biggest_win: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    current_streak: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    best_streak: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    experience: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# =============================================================================
# TABLA: TOURNAMENTS
# =============================================================================

class ArchivedTournament(IntegrityMixin, Base):
    __tablename__ = "tournaments"

    HASHED_FIELDS = ("address", "entry_fee", "max_players", "prize_pool", "status", "participants", "payouts")

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    casino: Mapped[str] = mapped_column(String(64), nullable=False)
    authority: Mapped[str] = mapped_column(String(128), nullable=False)
    entry_fee: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    max_players: Mapped[int] = mapped_column(BigInteger, nullable=False)
    prize_pool: Mapped[Decimal] = mapped_column(Amount, default=0, nullable=False)
    status: Mapped[TournamentStatus] = mapped_column(Enum(TournamentStatus), nullable=False)
    participants: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    payouts: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    finalized_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_tournaments_status", "status"),
        CheckConstraint("entry_fee > 0", name="check_positive_entry_fee"),
    )


# =============================================================================
# EVENT LISTENERS PARA INTEGRIDAD AUTOMÁTICA
# =============================================================================

def _stamp_record_hash(mapper, connection, target: IntegrityMixin):
    """Recalcula record_hash antes de insertar o actualizar."""
    target.record_hash = target.compute_record_hash()


for _model in (ArchivedCasino, ArchivedGame, ArchivedPlayerStats, ArchivedTournament):
    event.listen(_model, "before_insert", _stamp_record_hash)
    event.listen(_model, "before_update", _stamp_record_hash)
