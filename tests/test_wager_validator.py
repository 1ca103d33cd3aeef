import unittest

from backend.app.casino_ledger import Casino
from backend.app.errors import CasinoErrorCode, StateError, ValidationError
from backend.app.fairness import hash_server_seed
from backend.app.payout_engine import GameType
from backend.app.wager_validator import WagerValidator


def make_casino(**overrides) -> Casino:
    values = dict(
        address="casino_x",
        authority="house",
        token_mint="SOL",
        treasury="treasury_x",
        vault="vault_x",
        house_edge=200,
        min_bet=100,
        max_bet=10_000,
        treasury_fee=100,
    )
    values.update(overrides)
    return Casino(**values)


class TestBetLimits(unittest.TestCase):

    def setUp(self):
        self.casino = make_casino()

    def test_amounts_within_bounds_pass(self):
        for amount in (100, 101, 5_000, 9_999, 10_000):
            WagerValidator.validate_bet(self.casino, amount)

    def test_below_minimum(self):
        with self.assertRaises(ValidationError) as ctx:
            WagerValidator.validate_bet(self.casino, 99)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.BET_TOO_SMALL)

    def test_above_maximum(self):
        with self.assertRaises(ValidationError) as ctx:
            WagerValidator.validate_bet(self.casino, 10_001)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.BET_TOO_LARGE)


class TestOperational(unittest.TestCase):

    def test_inactive_is_reported_before_paused(self):
        casino = make_casino(is_active=False, is_paused=True)
        with self.assertRaises(StateError) as ctx:
            WagerValidator.ensure_operational(casino)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CASINO_NOT_ACTIVE)

    def test_paused(self):
        with self.assertRaises(StateError) as ctx:
            WagerValidator.ensure_operational(make_casino(is_paused=True))
        self.assertEqual(ctx.exception.code, CasinoErrorCode.CASINO_PAUSED)


class TestInputFormat(unittest.TestCase):

    def test_prediction_length_limit(self):
        WagerValidator.validate_prediction(GameType.SLOTS, bytes(256))
        with self.assertRaises(ValidationError):
            WagerValidator.validate_prediction(GameType.SLOTS, bytes(257))

    def test_prediction_shape_per_game(self):
        WagerValidator.validate_prediction(GameType.SLOTS, b"")
        WagerValidator.validate_prediction(GameType.DICE_ROLL, bytes([50, 0]))
        for game_type, prediction in (
            (GameType.COIN_FLIP, b""),
            (GameType.ROULETTE, b""),
            (GameType.DICE_ROLL, bytes([50])),
        ):
            with self.assertRaises(ValidationError) as ctx:
                WagerValidator.validate_prediction(game_type, prediction)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_PREDICTION)

    def test_parse_prediction(self):
        self.assertEqual(WagerValidator.parse_prediction([0, 255]), bytes([0, 255]))
        self.assertEqual(WagerValidator.parse_prediction([]), b"")
        for bad in ([256], [-1], [1.5], [True], "heads", None):
            with self.assertRaises(ValidationError) as ctx:
                WagerValidator.parse_prediction(bad)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_PREDICTION)

    def test_client_seed_bounds(self):
        WagerValidator.validate_client_seed("x" * 64)
        for seed in ("", "x" * 65):
            with self.assertRaises(ValidationError) as ctx:
                WagerValidator.validate_client_seed(seed)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_CLIENT_SEED)

    def test_server_seed_hash_format(self):
        WagerValidator.validate_server_seed_hash(hash_server_seed("abc"))
        for bad in ("abc", hash_server_seed("abc").upper(), "g" * 64):
            with self.assertRaises(ValidationError) as ctx:
                WagerValidator.validate_server_seed_hash(bad)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.INVALID_SERVER_SEED)

    def test_validate_new_game_reports_first_failure(self):
        casino = make_casino(is_paused=True)
        with self.assertRaises(StateError):
            WagerValidator.validate_new_game(casino, GameType.COIN_FLIP, 1, b"", "", "")


if __name__ == "__main__":
    unittest.main()
