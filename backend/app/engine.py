"""
=============================================================================
FAIRHOUSE - Motor del Casino
=============================================================================
Operaciones externas del casino. Cada una es una transacción atómica sobre
el RecordStore:

1. Lock de los registros involucrados
2. Todas las verificaciones (validación, estado, equidad, autorización)
3. Escrituras en la copia de trabajo
4. Transferencia de custodia como ÚLTIMO paso
5. Commit

Si la custodia falla, la transacción se descarta entera: un claim fallido
deja el juego en RESOLVED sin cobrar y se puede reintentar.

El motor es síncrono: no espera, no reintenta, no mide el tiempo por su
cuenta (usa el reloj inyectado).
=============================================================================
"""

import functools
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from .arithmetic import checked_add
from .casino_ledger import Casino, PlayerStats
from .clock import Clock, SystemClock
from .custody import FundCustody
from .errors import (
    AuthorizationError,
    CasinoError,
    CasinoErrorCode,
    ResourceError,
    StateError,
    StorageError,
    ValidationError,
)
from .game_record import Game, GameStatus
from .fairness import ProvableFairData
from .payout_engine import GameResult, GameType, calculate_payout, describe_outcome, resolve_outcome
from .store import RecordStore, derive_address
from .tournament import PrizeDistributor, Tournament, TournamentManager
from .wager_validator import WagerValidator

logger = logging.getLogger(__name__)


def _logs_rejections(tag: str) -> Callable:
    """Registra en WARNING las operaciones rechazadas con su código."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except CasinoError as e:
                logger.warning("[%s] %s rejected: %s", tag, func.__name__, e)
                raise
        return wrapper
    return decorator


class CasinoEngine:
    """
    Punto de entrada de todas las operaciones del casino.

    Un motor administra un único casino (uno por despliegue). Las cuentas de
    custodia de los jugadores se identifican por su identidad de llamador.
    """

    def __init__(
        self,
        custody: FundCustody,
        clock: Optional[Clock] = None,
        store: Optional[RecordStore] = None
    ):
        self.custody = custody
        self.clock = clock or SystemClock()
        self.store = store or RecordStore()

        self.casino_address = derive_address("casino")
        self.vault_address = derive_address("vault", self.casino_address)
        self.treasury_address = derive_address("treasury", self.casino_address)

    # =========================================================================
    # DIRECCIONES
    # =========================================================================

    def game_address(self, player: str, session_id: int) -> str:
        return derive_address("game", self.casino_address, player, session_id)

    def player_address(self, player: str) -> str:
        return derive_address("player", self.casino_address, player)

    def tournament_address(self, index: int) -> str:
        return derive_address("tournament", self.casino_address, index)

    @staticmethod
    def _require_authority(casino: Casino, caller: str) -> None:
        if caller != casino.authority:
            raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, f"{caller} is not the casino authority")

    # =========================================================================
    # ADMINISTRACIÓN DEL CASINO
    # =========================================================================

    @_logs_rejections("CASINO")
    def initialize_casino(
        self,
        caller: str,
        house_edge: int,
        min_bet: int,
        max_bet: int,
        treasury_fee: int,
        token_mint: str = "SOL"
    ) -> Casino:
        """
        Crea el casino. El llamador queda como autoridad.

        Raises:
            StorageError: ACCOUNT_ALREADY_INITIALIZED
            ValidationError: configuración fuera de rango
        """
        now = self.clock.now()
        with self.store.transaction(self.casino_address) as tx:
            if tx.exists(self.casino_address):
                raise StorageError(CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED, self.casino_address)

            casino = Casino(
                address=self.casino_address,
                authority=caller,
                token_mint=token_mint,
                treasury=self.treasury_address,
                vault=self.vault_address,
                house_edge=house_edge,
                min_bet=min_bet,
                max_bet=max_bet,
                treasury_fee=treasury_fee,
                created_at=now,
                updated_at=now,
            )
            casino.validate_config()
            tx.put(self.casino_address, casino)

        logger.info(
            "[CASINO] Initialized by %s: house_edge=%sbp fee=%sbp bets=[%s, %s]",
            caller, house_edge, treasury_fee, min_bet, max_bet
        )
        return self.get_casino()

    @_logs_rejections("CASINO")
    def update_casino_config(
        self,
        caller: str,
        house_edge: Optional[int] = None,
        min_bet: Optional[int] = None,
        max_bet: Optional[int] = None,
        is_active: Optional[bool] = None,
        is_paused: Optional[bool] = None
    ) -> Casino:
        """Actualiza solo los campos presentes (solo autoridad)."""
        now = self.clock.now()
        with self.store.transaction(self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            self._require_authority(casino, caller)
            casino.apply_config_update(
                now,
                house_edge=house_edge,
                min_bet=min_bet,
                max_bet=max_bet,
                is_active=is_active,
                is_paused=is_paused,
            )
            tx.put(self.casino_address, casino)

        logger.info("[CASINO] Config updated by %s", caller)
        return self.get_casino()

    @_logs_rejections("CASINO")
    def emergency_pause(self, caller: str) -> Casino:
        """Bloquea nuevas apuestas. Resolver y cobrar siguen permitidos."""
        now = self.clock.now()
        with self.store.transaction(self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            self._require_authority(casino, caller)
            casino.pause(now)
            tx.put(self.casino_address, casino)

        logger.warning("[CASINO] EMERGENCY PAUSE by %s", caller)
        return self.get_casino()

    @_logs_rejections("TREASURY")
    def withdraw_treasury(self, caller: str, amount: int) -> int:
        """
        Transfiere fondos de la tesorería a la autoridad.

        Returns:
            Saldo restante de la tesorería
        """
        now = self.clock.now()
        with self.store.transaction(self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            self._require_authority(casino, caller)
            if amount <= 0:
                raise ValidationError(CasinoErrorCode.INVALID_AMOUNT, "withdraw amount must be positive")
            casino.updated_at = now
            tx.put(self.casino_address, casino)
            self.custody.transfer(casino.treasury, caller, amount, memo="treasury withdrawal")

        remaining = self.custody.balance_of(self.treasury_address)
        logger.info("[TREASURY] %s withdrew %s (remaining %s)", caller, amount, remaining)
        return remaining

    # =========================================================================
    # CICLO DE VIDA DEL JUEGO
    # =========================================================================

    @_logs_rejections("GAME")
    def create_game(
        self,
        caller: str,
        game_type: Union[GameType, str],
        bet_amount: int,
        prediction: bytes,
        client_seed: str,
        server_seed_hash: str
    ) -> str:
        """
        Registra la apuesta, guarda el compromiso y mueve el stake al vault.

        Returns:
            Dirección del juego (game_id)
        """
        if not isinstance(game_type, GameType):
            game_type = GameType.parse(game_type)
        prediction = bytes(prediction)
        now = self.clock.now()

        with self.store.transaction(self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            WagerValidator.validate_new_game(
                casino, game_type, bet_amount, prediction, client_seed, server_seed_hash
            )

            session_id = casino.game_count
            game_id = self.game_address(caller, session_id)
            if tx.exists(game_id):
                raise StorageError(CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED, game_id)

            game = Game.open(
                address=game_id,
                player=caller,
                casino=casino.address,
                game_type=game_type,
                bet_amount=bet_amount,
                prediction=prediction,
                provable_fair=ProvableFairData.commit(server_seed_hash, client_seed),
                session_id=session_id,
                now=now,
            )
            game.activate(now)

            casino.game_count = checked_add(casino.game_count, 1)
            casino.updated_at = now
            tx.put(game_id, game)
            tx.put(self.casino_address, casino)

            self.custody.transfer(caller, casino.vault, bet_amount, memo=f"stake {game_id}")

        logger.info("[GAME] %s created by %s: %s bet=%s", game_id, caller, game_type.value, bet_amount)
        return game_id

    @_logs_rejections("RESOLVE")
    def resolve_game(self, game_id: str, revealed_server_seed: str, nonce: int) -> GameResult:
        """
        Verifica el seed revelado, calcula el resultado y actualiza estadísticas.
        Cualquiera puede resolver: la verificación del compromiso es la guarda.

        Raises:
            StateError: CANNOT_RESOLVE_GAME
            FairnessError: el seed no corresponde al hash comprometido
        """
        now = self.clock.now()
        with self.store.transaction(game_id, self.casino_address) as tx:
            game = tx.require(game_id, CasinoErrorCode.GAME_NOT_FOUND)
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)

            if not game.can_be_resolved(now):
                raise StateError(CasinoErrorCode.CANNOT_RESOLVE_GAME, f"status={game.status.value}")

            digest = game.provable_fair.reveal(revealed_server_seed, nonce)
            outcome = resolve_outcome(game.game_type, digest)
            result = calculate_payout(
                game.game_type, game.prediction, outcome, game.bet_amount, casino.house_edge
            )
            treasury_fee = casino.calculate_treasury_fee(game.bet_amount)
            result = replace(result, treasury_fee_taken=treasury_fee)

            game.resolve(result, now)
            casino.update_stats(game.bet_amount, result.payout, result.house_edge_taken, treasury_fee, now)

            player_key = self.player_address(game.player)
            profile = tx.get(player_key)
            if profile is not None:
                profile.record_game(game.bet_amount, result.payout, now)
                tx.put(player_key, profile)

            tx.put(game_id, game)
            tx.put(self.casino_address, casino)

            if treasury_fee > 0:
                self.custody.transfer(casino.vault, casino.treasury, treasury_fee, memo=f"fee {game_id}")

        logger.info(
            "[RESOLVE] %s: %s -> payout=%s (edge=%s fee=%s)",
            game_id, describe_outcome(game.game_type, result.outcome),
            result.payout, result.house_edge_taken, treasury_fee
        )
        return result

    @_logs_rejections("CLAIM")
    def claim_winnings(self, caller: str, game_id: str) -> int:
        """
        Paga el premio desde el vault. Un solo cobro por juego.

        Returns:
            Monto pagado
        """
        now = self.clock.now()
        with self.store.transaction(game_id) as tx:
            game = tx.require(game_id, CasinoErrorCode.GAME_NOT_FOUND)
            if caller != game.player:
                raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "only the player can claim")

            payout = game.claim(now)
            tx.put(game_id, game)
            self.custody.transfer(self.vault_address, game.player, payout, memo=f"payout {game_id}")

        logger.info("[CLAIM] %s paid %s to %s", game_id, payout, caller)
        return payout

    @_logs_rejections("GAME")
    def cancel_game(self, caller: str, game_id: str) -> Game:
        """Cancela un juego sin resolver y devuelve el stake (jugador o autoridad)."""
        casino = self.get_casino()
        with self.store.transaction(game_id) as tx:
            game = tx.require(game_id, CasinoErrorCode.GAME_NOT_FOUND)
            if caller not in (game.player, casino.authority):
                raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "only the player or authority can cancel")

            game.cancel()
            tx.put(game_id, game)
            self.custody.transfer(self.vault_address, game.player, game.bet_amount, memo=f"refund {game_id}")

        logger.info("[GAME] %s cancelled by %s, refunded %s", game_id, caller, game.bet_amount)
        return game

    @_logs_rejections("GAME")
    def expire_game(self, game_id: str) -> Game:
        """Vence un juego pasado expires_at y devuelve el stake. Sin permisos."""
        now = self.clock.now()
        with self.store.transaction(game_id) as tx:
            game = tx.require(game_id, CasinoErrorCode.GAME_NOT_FOUND)
            game.expire(now)
            tx.put(game_id, game)
            self.custody.transfer(self.vault_address, game.player, game.bet_amount, memo=f"refund {game_id}")

        logger.info("[GAME] %s expired, refunded %s", game_id, game.bet_amount)
        return game

    # =========================================================================
    # JUGADORES
    # =========================================================================

    @_logs_rejections("PLAYER")
    def initialize_player(self, caller: str) -> PlayerStats:
        now = self.clock.now()
        player_key = self.player_address(caller)
        with self.store.transaction(player_key, self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            if tx.exists(player_key):
                raise StorageError(CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED, player_key)

            profile = PlayerStats(address=player_key, player=caller, created_at=now, updated_at=now)
            casino.register_player(now)
            tx.put(player_key, profile)
            tx.put(self.casino_address, casino)

        logger.info("[PLAYER] Profile created for %s", caller)
        return profile

    @_logs_rejections("PLAYER")
    def update_player_stats(
        self,
        caller: str,
        games_played: int,
        total_wagered: int,
        total_won: int,
        player: Optional[str] = None
    ) -> PlayerStats:
        """
        Suma incrementos al perfil. El jugador actualiza el suyo; la autoridad
        puede indicar otro jugador.
        """
        player = player or caller
        now = self.clock.now()
        player_key = self.player_address(player)
        with self.store.transaction(player_key) as tx:
            profile = tx.require(player_key, CasinoErrorCode.PLAYER_NOT_FOUND)
            if caller != player:
                self._require_authority(self.get_casino(), caller)
            profile.apply_delta(games_played, total_wagered, total_won, now)
            tx.put(player_key, profile)

        logger.info("[PLAYER] Stats updated for %s (+%s games)", player, games_played)
        return profile

    # =========================================================================
    # TORNEOS
    # =========================================================================

    @_logs_rejections("TOURNAMENT")
    def create_tournament(
        self,
        caller: str,
        entry_fee: int,
        max_players: int,
        start_time: int,
        duration: int
    ) -> str:
        now = self.clock.now()
        with self.store.transaction(self.casino_address) as tx:
            casino = tx.require(self.casino_address, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)
            self._require_authority(casino, caller)

            tournament_id = self.tournament_address(casino.tournament_count)
            tournament = TournamentManager.create(
                address=tournament_id,
                casino=casino.address,
                authority=caller,
                entry_fee=entry_fee,
                max_players=max_players,
                start_time=start_time,
                duration=duration,
                now=now,
            )
            casino.tournament_count = checked_add(casino.tournament_count, 1)
            casino.updated_at = now
            tx.put(tournament_id, tournament)
            tx.put(self.casino_address, casino)

        logger.info("[TOURNAMENT] %s created: fee=%s max=%s", tournament_id, entry_fee, max_players)
        return tournament_id

    @_logs_rejections("TOURNAMENT")
    def join_tournament(self, caller: str, tournament_id: str) -> Tournament:
        """Inscribe al jugador y mueve el fee de entrada al vault."""
        now = self.clock.now()
        with self.store.transaction(tournament_id) as tx:
            tournament = tx.require(tournament_id, CasinoErrorCode.TOURNAMENT_NOT_FOUND)
            TournamentManager.join(tournament, caller, now)
            tx.put(tournament_id, tournament)
            self.custody.transfer(caller, self.vault_address, tournament.entry_fee, memo=f"entry {tournament_id}")

        logger.info("[TOURNAMENT] %s joined %s (%s/%s)", caller, tournament_id,
                    tournament.current_players, tournament.max_players)
        return tournament

    @_logs_rejections("TOURNAMENT")
    def finalize_tournament(
        self,
        caller: str,
        tournament_id: str,
        distributor: Optional[PrizeDistributor] = None
    ) -> Dict[str, int]:
        """
        Cierra el torneo y paga el reparto que decide el distribuidor.

        Returns:
            Reparto {jugador: monto}
        """
        now = self.clock.now()
        with self.store.transaction(tournament_id) as tx:
            tournament = tx.require(tournament_id, CasinoErrorCode.TOURNAMENT_NOT_FOUND)
            if caller != tournament.authority:
                raise AuthorizationError(CasinoErrorCode.UNAUTHORIZED, "only the tournament authority can finalize")

            payouts = TournamentManager.finalize(tournament, now, distributor)
            total = sum(payouts.values())
            available = self.custody.balance_of(self.vault_address)
            if total > available:
                raise ResourceError(CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS, f"vault holds {available}, needs {total}")

            tx.put(tournament_id, tournament)
            for player, amount in payouts.items():
                if amount > 0:
                    self.custody.transfer(self.vault_address, player, amount, memo=f"prize {tournament_id}")

        logger.info("[TOURNAMENT] %s finalized: %s payouts, %s total", tournament_id, len(payouts), total)
        return payouts

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_casino(self) -> Casino:
        casino = self.store.get(self.casino_address)
        if casino is None:
            raise StorageError(CasinoErrorCode.ACCOUNT_NOT_INITIALIZED, self.casino_address)
        return casino

    def get_game(self, game_id: str) -> Game:
        game = self.store.get(game_id)
        if game is None:
            raise StorageError(CasinoErrorCode.GAME_NOT_FOUND, game_id)
        return game

    def get_player(self, player: str) -> PlayerStats:
        profile = self.store.get(self.player_address(player))
        if profile is None:
            raise StorageError(CasinoErrorCode.PLAYER_NOT_FOUND, player)
        return profile

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.store.get(tournament_id)
        if tournament is None:
            raise StorageError(CasinoErrorCode.TOURNAMENT_NOT_FOUND, tournament_id)
        return tournament

    def list_games(self, player: Optional[str] = None, status: Optional[GameStatus] = None) -> List[Game]:
        games = self.store.values("game")
        if player is not None:
            games = [g for g in games if g.player == player]
        if status is not None:
            games = [g for g in games if g.status == status]
        return sorted(games, key=lambda g: g.session_id)

    def casino_report(self) -> Dict[str, Any]:
        """Estado del casino con saldos de custodia y ratios en porcentaje."""
        casino = self.get_casino()
        report = casino.to_dict()
        report["vault_balance"] = self.custody.balance_of(casino.vault)
        report["treasury_balance"] = self.custody.balance_of(casino.treasury)
        return report
