"""
Fixtures compartidos: motor con reloj fijo y custodia en memoria.
"""

from typing import Callable, Tuple

from backend.app.clock import FixedClock
from backend.app.custody import CustodyLedger
from backend.app.engine import CasinoEngine
from backend.app.fairness import derive_outcome, hash_server_seed
from backend.app.payout_engine import GameType, resolve_outcome

START = 1_700_000_000
AUTHORITY = "house"
PLAYER = "alice"
OTHER_PLAYER = "bob"
CLIENT_SEED = "lucky-client"


def make_engine(
    house_edge: int = 200,
    min_bet: int = 100,
    max_bet: int = 1_000_000,
    treasury_fee: int = 100,
    initialize: bool = True
) -> Tuple[CasinoEngine, FixedClock, CustodyLedger]:
    clock = FixedClock(START)
    custody = CustodyLedger(clock)
    engine = CasinoEngine(custody, clock=clock)
    if initialize:
        engine.initialize_casino(AUTHORITY, house_edge, min_bet, max_bet, treasury_fee)
    return engine, clock, custody


def find_seed(
    game_type: GameType,
    predicate: Callable[[bytes], bool],
    client_seed: str = CLIENT_SEED,
    nonce: int = 0
) -> str:
    """Primer seed "seed-N" cuyo resultado cumple el predicado."""
    for i in range(10_000):
        seed = f"seed-{i}"
        outcome = resolve_outcome(game_type, derive_outcome(seed, client_seed, nonce))
        if predicate(outcome):
            return seed
    raise AssertionError("no seed found")


def winning_coin_seed(side: int = 0, nonce: int = 0) -> str:
    return find_seed(GameType.COIN_FLIP, lambda outcome: outcome[0] == side, nonce=nonce)


def losing_coin_seed(side: int = 0, nonce: int = 0) -> str:
    return find_seed(GameType.COIN_FLIP, lambda outcome: outcome[0] != side, nonce=nonce)


def place_coin_flip(engine: CasinoEngine, seed: str, bet: int = 1000, player: str = PLAYER, side: int = 0) -> str:
    return engine.create_game(
        player, GameType.COIN_FLIP, bet, bytes([side]), CLIENT_SEED, hash_server_seed(seed)
    )
