"""
Ciclo completo del motor con custodia en memoria: saldos, estadísticas,
autorización y atomicidad de las operaciones.
"""

import unittest

from backend.app.config import CasinoConstants
from backend.app.errors import (
    AuthorizationError,
    CasinoErrorCode,
    FairnessError,
    ResourceError,
    StateError,
    StorageError,
    TournamentError,
    ValidationError,
)
from backend.app.fairness import hash_server_seed
from backend.app.game_record import GameStatus
from backend.app.payout_engine import GameType
from tests.support import (
    AUTHORITY,
    CLIENT_SEED,
    OTHER_PLAYER,
    PLAYER,
    START,
    losing_coin_seed,
    make_engine,
    place_coin_flip,
    winning_coin_seed,
)

BANKROLL = 100_000


class EngineTestCase(unittest.TestCase):

    def setUp(self):
        self.engine, self.clock, self.custody = make_engine()
        self.custody.deposit(PLAYER, 10_000)
        self.custody.deposit(OTHER_PLAYER, 10_000)
        self.custody.deposit(self.engine.vault_address, BANKROLL)

    def balance(self, account):
        return self.custody.balance_of(account)


class TestCasinoSetup(EngineTestCase):

    def test_initialized_state(self):
        casino = self.engine.get_casino()
        self.assertEqual(casino.authority, AUTHORITY)
        self.assertEqual(casino.vault, self.engine.vault_address)
        self.assertEqual(casino.treasury, self.engine.treasury_address)
        self.assertTrue(casino.is_operational())
        self.assertEqual(casino.created_at, START)

    def test_initialize_twice(self):
        with self.assertRaises(StorageError) as ctx:
            self.engine.initialize_casino(AUTHORITY, 200, 100, 1000, 100)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED)

    def test_invalid_config_leaves_nothing_behind(self):
        engine, _, _ = make_engine(initialize=False)
        with self.assertRaises(ValidationError) as ctx:
            engine.initialize_casino(AUTHORITY, 10, 100, 1000, 100)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_HOUSE_EDGE)
        with self.assertRaises(StorageError) as ctx:
            engine.get_casino()
        self.assertEqual(ctx.exception.code, CasinoErrorCode.ACCOUNT_NOT_INITIALIZED)

    def test_update_config(self):
        self.clock.advance(10)
        casino = self.engine.update_casino_config(AUTHORITY, house_edge=300, max_bet=50_000)
        self.assertEqual(casino.house_edge, 300)
        self.assertEqual(casino.max_bet, 50_000)
        self.assertEqual(casino.min_bet, 100)
        self.assertEqual(casino.updated_at, START + 10)

    def test_rejected_update_keeps_config(self):
        with self.assertRaises(ValidationError):
            self.engine.update_casino_config(AUTHORITY, house_edge=300, min_bet=0)
        self.assertEqual(self.engine.get_casino().house_edge, 200)

    def test_only_authority_administers(self):
        for call in (
            lambda: self.engine.update_casino_config(PLAYER, house_edge=300),
            lambda: self.engine.emergency_pause(PLAYER),
            lambda: self.engine.withdraw_treasury(PLAYER, 1),
            lambda: self.engine.create_tournament(PLAYER, 100, 4, START, 3600),
        ):
            with self.assertRaises(AuthorizationError) as ctx:
                call()
            self.assertEqual(ctx.exception.code, CasinoErrorCode.UNAUTHORIZED)


class TestCreateGame(EngineTestCase):

    def test_stake_moves_to_vault(self):
        game_id = place_coin_flip(self.engine, "seed-x")
        self.assertEqual(game_id, self.engine.game_address(PLAYER, 0))
        self.assertEqual(self.balance(PLAYER), 9_000)
        self.assertEqual(self.balance(self.engine.vault_address), BANKROLL + 1000)

        game = self.engine.get_game(game_id)
        self.assertEqual(game.status, GameStatus.ACTIVE)
        self.assertEqual(game.expires_at, START + CasinoConstants.MAX_GAME_DURATION)
        self.assertEqual(game.provable_fair.server_seed_hash, hash_server_seed("seed-x"))
        self.assertIsNone(game.provable_fair.server_seed)
        self.assertEqual(self.engine.get_casino().game_count, 1)

    def test_each_game_gets_its_own_address(self):
        first = place_coin_flip(self.engine, "seed-a")
        second = place_coin_flip(self.engine, "seed-b")
        third = place_coin_flip(self.engine, "seed-c", player=OTHER_PLAYER)
        self.assertEqual(len({first, second, third}), 3)
        self.assertEqual([g.address for g in self.engine.list_games(player=PLAYER)], [first, second])
        self.assertEqual(len(self.engine.list_games(status=GameStatus.ACTIVE)), 3)

    def test_game_type_by_name(self):
        game_id = self.engine.create_game(
            PLAYER, "dice_roll", 500, bytes([50, 0]), CLIENT_SEED, hash_server_seed("s")
        )
        self.assertEqual(self.engine.get_game(game_id).game_type, GameType.DICE_ROLL)

    def test_rejected_bet_moves_nothing(self):
        with self.assertRaises(ValidationError) as ctx:
            place_coin_flip(self.engine, "seed-x", bet=99)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.BET_TOO_SMALL)
        self.assertEqual(self.balance(PLAYER), 10_000)
        self.assertEqual(self.engine.get_casino().game_count, 0)
        self.assertEqual(self.engine.list_games(), [])

    def test_unfunded_player(self):
        with self.assertRaises(ResourceError) as ctx:
            place_coin_flip(self.engine, "seed-x", player="carol")
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS)
        self.assertEqual(self.engine.list_games(), [])
        self.assertEqual(self.engine.get_casino().game_count, 0)

    def test_paused_casino_rejects_bets(self):
        self.engine.emergency_pause(AUTHORITY)
        with self.assertRaises(StateError) as ctx:
            place_coin_flip(self.engine, "seed-x")
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CASINO_PAUSED)

        self.engine.update_casino_config(AUTHORITY, is_paused=False)
        place_coin_flip(self.engine, "seed-x")


class TestResolveAndClaim(EngineTestCase):

    def test_winning_game(self):
        seed = winning_coin_seed(side=0, nonce=7)
        game_id = place_coin_flip(self.engine, seed)

        result = self.engine.resolve_game(game_id, seed, 7)
        self.assertEqual(result.payout, 1930)
        self.assertEqual(result.house_edge_taken, 20)
        self.assertEqual(result.treasury_fee_taken, 10)
        self.assertEqual(self.balance(self.engine.treasury_address), 10)
        self.assertEqual(self.balance(self.engine.vault_address), BANKROLL + 990)

        game = self.engine.get_game(game_id)
        self.assertEqual(game.status, GameStatus.RESOLVED)
        self.assertEqual(game.provable_fair.server_seed, seed)
        self.assertEqual(game.provable_fair.nonce, 7)

        stats = self.engine.get_casino().stats
        self.assertEqual(stats.total_games, 1)
        self.assertEqual(stats.total_volume, 1000)
        self.assertEqual(stats.total_payouts, 1930)
        self.assertEqual(stats.total_profit, 20 - 1930)

        self.assertEqual(self.engine.claim_winnings(PLAYER, game_id), 1930)
        self.assertEqual(self.balance(PLAYER), 9_000 + 1930)
        self.assertEqual(self.engine.get_game(game_id).status, GameStatus.CLAIMED)

        with self.assertRaises(StateError) as ctx:
            self.engine.claim_winnings(PLAYER, game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_CLAIM_WINNINGS)
        self.assertEqual(self.balance(PLAYER), 9_000 + 1930)

    def test_losing_game_has_nothing_to_claim(self):
        seed = losing_coin_seed(side=0)
        game_id = place_coin_flip(self.engine, seed)
        self.assertEqual(self.engine.resolve_game(game_id, seed, 0).payout, 0)
        with self.assertRaises(StateError) as ctx:
            self.engine.claim_winnings(PLAYER, game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_CLAIM_WINNINGS)

    def test_wrong_seed_changes_nothing(self):
        game_id = place_coin_flip(self.engine, "committed-seed")
        with self.assertRaises(FairnessError) as ctx:
            self.engine.resolve_game(game_id, "other-seed", 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.PROVABLE_FAIRNESS_VERIFICATION_FAILED)

        game = self.engine.get_game(game_id)
        self.assertEqual(game.status, GameStatus.ACTIVE)
        self.assertIsNone(game.provable_fair.server_seed)
        self.assertEqual(self.engine.get_casino().stats.total_games, 0)
        self.assertEqual(self.balance(self.engine.treasury_address), 0)

        self.engine.resolve_game(game_id, "committed-seed", 0)

    def test_resolve_twice(self):
        seed = losing_coin_seed()
        game_id = place_coin_flip(self.engine, seed)
        self.engine.resolve_game(game_id, seed, 0)
        with self.assertRaises(StateError) as ctx:
            self.engine.resolve_game(game_id, seed, 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_RESOLVE_GAME)
        self.assertEqual(self.engine.get_casino().stats.total_games, 1)

    def test_resolve_unknown_game(self):
        with self.assertRaises(StorageError) as ctx:
            self.engine.resolve_game("game_missing", "seed", 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.GAME_NOT_FOUND)

    def test_paused_casino_still_settles(self):
        seed = winning_coin_seed()
        game_id = place_coin_flip(self.engine, seed)
        self.engine.emergency_pause(AUTHORITY)
        self.engine.resolve_game(game_id, seed, 0)
        self.assertEqual(self.engine.claim_winnings(PLAYER, game_id), 1930)

    def test_only_player_claims(self):
        seed = winning_coin_seed()
        game_id = place_coin_flip(self.engine, seed)
        self.engine.resolve_game(game_id, seed, 0)
        with self.assertRaises(AuthorizationError):
            self.engine.claim_winnings(OTHER_PLAYER, game_id)
        self.assertEqual(self.engine.get_game(game_id).status, GameStatus.RESOLVED)

    def test_failed_payout_leaves_game_claimable(self):
        engine, _, custody = make_engine()
        custody.deposit(PLAYER, 10_000)
        seed = winning_coin_seed()
        game_id = place_coin_flip(engine, seed)
        engine.resolve_game(game_id, seed, 0)

        # Vault: 1000 de stake - 10 de fee, no alcanza para 1930
        with self.assertRaises(ResourceError) as ctx:
            engine.claim_winnings(PLAYER, game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS)
        game = engine.get_game(game_id)
        self.assertEqual(game.status, GameStatus.RESOLVED)
        self.assertIsNone(game.claimed_at)

        custody.deposit(engine.vault_address, 5_000)
        self.assertEqual(engine.claim_winnings(PLAYER, game_id), 1930)

    def test_locked_game_is_rejected(self):
        seed = winning_coin_seed()
        game_id = place_coin_flip(self.engine, seed)
        self.engine.resolve_game(game_id, seed, 0)
        with self.engine.store.transaction(game_id):
            with self.assertRaises(StorageError) as ctx:
                self.engine.claim_winnings(PLAYER, game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CONCURRENT_MODIFICATION)
        self.assertEqual(self.engine.claim_winnings(PLAYER, game_id), 1930)


class TestCancelAndExpire(EngineTestCase):

    def test_player_cancels_with_refund(self):
        game_id = place_coin_flip(self.engine, "seed-x")
        game = self.engine.cancel_game(PLAYER, game_id)
        self.assertEqual(game.status, GameStatus.CANCELLED)
        self.assertEqual(self.balance(PLAYER), 10_000)
        self.assertEqual(self.balance(self.engine.vault_address), BANKROLL)

    def test_authority_may_cancel(self):
        game_id = place_coin_flip(self.engine, "seed-x")
        self.engine.cancel_game(AUTHORITY, game_id)
        self.assertEqual(self.balance(PLAYER), 10_000)

    def test_stranger_may_not_cancel(self):
        game_id = place_coin_flip(self.engine, "seed-x")
        with self.assertRaises(AuthorizationError):
            self.engine.cancel_game(OTHER_PLAYER, game_id)
        self.assertEqual(self.engine.get_game(game_id).status, GameStatus.ACTIVE)

    def test_resolved_game_cannot_be_cancelled(self):
        seed = losing_coin_seed()
        game_id = place_coin_flip(self.engine, seed)
        self.engine.resolve_game(game_id, seed, 0)
        with self.assertRaises(StateError) as ctx:
            self.engine.cancel_game(PLAYER, game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_CANCEL_GAME)

    def test_expired_game_refunds(self):
        seed = winning_coin_seed()
        game_id = place_coin_flip(self.engine, seed)

        with self.assertRaises(StateError) as ctx:
            self.engine.expire_game(game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.GAME_NOT_EXPIRED)

        self.clock.advance(CasinoConstants.MAX_GAME_DURATION + 1)
        with self.assertRaises(StateError) as ctx:
            self.engine.resolve_game(game_id, seed, 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_RESOLVE_GAME)

        game = self.engine.expire_game(game_id)
        self.assertEqual(game.status, GameStatus.EXPIRED)
        self.assertEqual(self.balance(PLAYER), 10_000)

        with self.assertRaises(StateError) as ctx:
            self.engine.expire_game(game_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_EXPIRE_GAME)


class TestTreasury(EngineTestCase):

    def setUp(self):
        super().setUp()
        seed = losing_coin_seed()
        self.engine.resolve_game(place_coin_flip(self.engine, seed), seed, 0)

    def test_withdraw(self):
        self.assertEqual(self.engine.withdraw_treasury(AUTHORITY, 4), 6)
        self.assertEqual(self.balance(AUTHORITY), 4)

    def test_withdraw_more_than_collected(self):
        with self.assertRaises(ResourceError) as ctx:
            self.engine.withdraw_treasury(AUTHORITY, 11)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS)
        self.assertEqual(self.balance(self.engine.treasury_address), 10)

    def test_withdraw_must_be_positive(self):
        with self.assertRaises(ValidationError) as ctx:
            self.engine.withdraw_treasury(AUTHORITY, 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_AMOUNT)

    def test_report(self):
        report = self.engine.casino_report()
        self.assertEqual(report["treasury_balance"], 10)
        self.assertEqual(report["vault_balance"], BANKROLL + 990)
        self.assertEqual(report["stats"]["total_games"], 1)
        self.assertAlmostEqual(report["profit_margin"], 2.0)


class TestPlayers(EngineTestCase):

    def test_profile_tracks_resolved_games(self):
        profile = self.engine.initialize_player(PLAYER)
        self.assertEqual(profile.level, 1)
        self.assertEqual(self.engine.get_casino().stats.active_players, 1)

        seed = winning_coin_seed()
        self.engine.resolve_game(place_coin_flip(self.engine, seed), seed, 0)
        profile = self.engine.get_player(PLAYER)
        self.assertEqual(profile.games_played, 1)
        self.assertEqual(profile.total_won, 1930)
        self.assertEqual(profile.current_streak, 1)
        self.assertEqual(profile.experience, CasinoConstants.XP_PER_GAME)

    def test_games_without_profile_still_resolve(self):
        seed = losing_coin_seed()
        self.engine.resolve_game(place_coin_flip(self.engine, seed), seed, 0)
        with self.assertRaises(StorageError) as ctx:
            self.engine.get_player(PLAYER)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.PLAYER_NOT_FOUND)

    def test_initialize_twice(self):
        self.engine.initialize_player(PLAYER)
        with self.assertRaises(StorageError) as ctx:
            self.engine.initialize_player(PLAYER)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.ACCOUNT_ALREADY_INITIALIZED)
        self.assertEqual(self.engine.get_casino().stats.active_players, 1)

    def test_update_stats(self):
        self.engine.initialize_player(PLAYER)
        profile = self.engine.update_player_stats(PLAYER, 2, 300, 100)
        self.assertEqual(profile.games_played, 2)
        self.assertEqual(profile.total_wagered, 300)

        profile = self.engine.update_player_stats(AUTHORITY, 1, 0, 0, player=PLAYER)
        self.assertEqual(profile.games_played, 3)

        with self.assertRaises(AuthorizationError):
            self.engine.update_player_stats(OTHER_PLAYER, 1, 0, 0, player=PLAYER)

    def test_update_missing_profile(self):
        with self.assertRaises(StorageError) as ctx:
            self.engine.update_player_stats(PLAYER, 1, 0, 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.PLAYER_NOT_FOUND)


class FixedSplit:

    def __init__(self, payouts):
        self.payouts = payouts

    def distribute(self, tournament):
        return self.payouts


class TestTournaments(EngineTestCase):

    def setUp(self):
        super().setUp()
        self.tournament_id = self.engine.create_tournament(AUTHORITY, 500, 4, START + 60, 3600)

    def test_create(self):
        self.assertEqual(self.tournament_id, self.engine.tournament_address(0))
        self.assertEqual(self.engine.get_casino().tournament_count, 1)
        tournament = self.engine.get_tournament(self.tournament_id)
        self.assertEqual(tournament.end_time, START + 60 + 3600)

    def test_join_collects_entry_fee(self):
        self.engine.join_tournament(PLAYER, self.tournament_id)
        tournament = self.engine.join_tournament(OTHER_PLAYER, self.tournament_id)
        self.assertEqual(tournament.prize_pool, 1000)
        self.assertEqual(self.balance(PLAYER), 9_500)
        self.assertEqual(self.balance(self.engine.vault_address), BANKROLL + 1000)

        with self.assertRaises(TournamentError) as ctx:
            self.engine.join_tournament(PLAYER, self.tournament_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.ALREADY_JOINED_TOURNAMENT)
        self.assertEqual(self.balance(PLAYER), 9_500)

    def test_unfunded_entry_rolls_back(self):
        with self.assertRaises(ResourceError):
            self.engine.join_tournament("carol", self.tournament_id)
        self.assertEqual(self.engine.get_tournament(self.tournament_id).participants, [])

    def test_finalize_pays_split(self):
        self.engine.join_tournament(PLAYER, self.tournament_id)
        self.engine.join_tournament(OTHER_PLAYER, self.tournament_id)

        with self.assertRaises(TournamentError):
            self.engine.finalize_tournament(AUTHORITY, self.tournament_id)

        self.clock.set(START + 60 + 3600)
        with self.assertRaises(AuthorizationError):
            self.engine.finalize_tournament(PLAYER, self.tournament_id)

        payouts = self.engine.finalize_tournament(AUTHORITY, self.tournament_id, FixedSplit({PLAYER: 800, OTHER_PLAYER: 200}))
        self.assertEqual(payouts, {PLAYER: 800, OTHER_PLAYER: 200})
        self.assertEqual(self.balance(PLAYER), 9_500 + 800)
        self.assertEqual(self.balance(OTHER_PLAYER), 9_500 + 200)

        with self.assertRaises(TournamentError) as ctx:
            self.engine.finalize_tournament(AUTHORITY, self.tournament_id)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CANNOT_FINALIZE_TOURNAMENT)

    def test_unknown_tournament(self):
        with self.assertRaises(StorageError) as ctx:
            self.engine.join_tournament(PLAYER, "tournament_missing")
        self.assertEqual(ctx.exception.code, CasinoErrorCode.TOURNAMENT_NOT_FOUND)


if __name__ == "__main__":
    unittest.main()
