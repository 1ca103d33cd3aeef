"""
=============================================================================
FAIRHOUSE - Repositorio del Archivo de Auditoría
=============================================================================
Guarda snapshots de casino, juegos, jugadores y torneos en la base de datos
(SQLAlchemy async). Cada archive_* es un upsert por dirección.
=============================================================================
"""

import logging
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from ..models import (
    ArchivedCasino,
    ArchivedGame,
    ArchivedPlayerStats,
    ArchivedTournament,
    Base,
)
from .casino_ledger import Casino, PlayerStats
from .config import ApiConfig
from .game_record import Game
from .tournament import Tournament

logger = logging.getLogger(__name__)


class ArchiveRepository:
    """Acceso async al archivo de auditoría."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.engine = engine or create_async_engine(database_url or ApiConfig.DATABASE_URL)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def _upsert(self, model: Type[Base], address: str, values: Dict[str, Any]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(model, address)
                if row is None:
                    row = model(address=address, **values)
                    session.add(row)
                else:
                    for name, value in values.items():
                        setattr(row, name, value)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    async def archive_casino(self, casino: Casino) -> None:
        stats = casino.stats
        await self._upsert(ArchivedCasino, casino.address, {
            "authority": casino.authority,
            "token_mint": casino.token_mint,
            "treasury": casino.treasury,
            "vault": casino.vault,
            "house_edge": casino.house_edge,
            "treasury_fee": casino.treasury_fee,
            "min_bet": casino.min_bet,
            "max_bet": casino.max_bet,
            "is_active": casino.is_active,
            "is_paused": casino.is_paused,
            "total_games": stats.total_games,
            "total_volume": stats.total_volume,
            "total_profit": stats.total_profit,
            "total_payouts": stats.total_payouts,
            "active_players": stats.active_players,
            "house_edge_collected": stats.house_edge_collected,
            "treasury_fees_collected": stats.treasury_fees_collected,
            "created_at": casino.created_at,
            "updated_at": casino.updated_at,
        })

    async def archive_game(self, game: Game) -> None:
        result = game.result
        fair = game.provable_fair
        await self._upsert(ArchivedGame, game.address, {
            "player": game.player,
            "casino": game.casino,
            "session_id": game.session_id,
            "game_type": game.game_type,
            "status": game.status,
            "bet_amount": game.bet_amount,
            "prediction_hex": game.prediction.hex(),
            "server_seed_hash": fair.server_seed_hash,
            "client_seed": fair.client_seed,
            "nonce": fair.nonce,
            "server_seed": fair.server_seed,
            "outcome_hex": result.outcome.hex() if result is not None else None,
            "multiplier": result.multiplier if result is not None else None,
            "payout": result.payout if result is not None else None,
            "house_edge_taken": result.house_edge_taken if result is not None else None,
            "treasury_fee_taken": result.treasury_fee_taken if result is not None else None,
            "created_at": game.created_at,
            "expires_at": game.expires_at,
            "resolved_at": game.resolved_at,
            "claimed_at": game.claimed_at,
        })

    async def archive_player(self, profile: PlayerStats) -> None:
        await self._upsert(ArchivedPlayerStats, profile.address, {
            "player": profile.player,
            "games_played": profile.games_played,
            "total_wagered": profile.total_wagered,
            "total_won": profile.total_won,
            "biggest_win": profile.biggest_win,
            "current_streak": profile.current_streak,
            "best_streak": profile.best_streak,
            "level": profile.level,
            "experience": profile.experience,
            "created_at": profile.created_at,
            "updated_at": profile.updated_at,
        })

    async def archive_tournament(self, tournament: Tournament) -> None:
        await self._upsert(ArchivedTournament, tournament.address, {
            "casino": tournament.casino,
            "authority": tournament.authority,
            "entry_fee": tournament.entry_fee,
            "max_players": tournament.max_players,
            "prize_pool": tournament.prize_pool,
            "status": tournament.status,
            "participants": list(tournament.participants),
            "payouts": dict(tournament.payouts),
            "start_time": tournament.start_time,
            "end_time": tournament.end_time,
            "created_at": tournament.created_at,
            "finalized_at": tournament.finalized_at,
        })

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    async def get_game(self, address: str) -> Optional[ArchivedGame]:
        async with self.session_factory() as session:
            return await session.get(ArchivedGame, address)

    async def list_games(self, player: Optional[str] = None) -> List[ArchivedGame]:
        query = select(ArchivedGame).order_by(ArchivedGame.session_id)
        if player is not None:
            query = query.where(ArchivedGame.player == player)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def verify_integrity(self) -> Dict[str, Any]:
        """
        Recalcula record_hash de todas las filas.
        Una fila con hash distinto fue alterada fuera del repositorio.
        """
        mismatches: List[str] = []
        verified = 0
        async with self.session_factory() as session:
            for model in (ArchivedCasino, ArchivedGame, ArchivedPlayerStats, ArchivedTournament):
                result = await session.execute(select(model))
                for row in result.scalars():
                    verified += 1
                    if not row.verify_record_integrity():
                        mismatches.append(f"{model.__tablename__}:{row.address}")

        if mismatches:
            logger.warning("[ARCHIVE] Integrity mismatches: %s", mismatches)
        return {
            "rows_verified": verified,
            "hash_mismatches": mismatches,
            "integrity_status": "OK" if not mismatches else "ALERT",
        }
