import unittest

from backend.app.clock import FixedClock
from backend.app.custody import GENESIS_HASH, CustodyLedger
from backend.app.errors import CasinoErrorCode, ResourceError, StorageError
from backend.app.store import RecordStore, derive_address


class TestCustodyLedger(unittest.TestCase):

    def setUp(self):
        self.clock = FixedClock(500)
        self.custody = CustodyLedger(self.clock)
        self.custody.deposit("alice", 1000)

    def test_deposit(self):
        self.assertEqual(self.custody.balance_of("alice"), 1000)
        self.assertEqual(self.custody.balance_of("nobody"), 0)
        self.assertEqual(self.custody.total_deposited, 1000)
        with self.assertRaises(ResourceError) as ctx:
            self.custody.deposit("alice", 0)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.TOKEN_TRANSFER_FAILED)

    def test_transfer_moves_funds(self):
        entry = self.custody.transfer("alice", "vault", 400, memo="stake")
        self.assertEqual(self.custody.balance_of("alice"), 600)
        self.assertEqual(self.custody.balance_of("vault"), 400)
        self.assertEqual(entry.sequence, 1)
        self.assertEqual(entry.timestamp, 500)
        self.assertEqual(entry.previous_hash, self.custody.entries[0].entry_hash)

    def test_insufficient_funds_moves_nothing(self):
        with self.assertRaises(ResourceError) as ctx:
            self.custody.transfer("alice", "vault", 1001)
        self.assertEqual(ctx.exception.code, CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS)
        self.assertEqual(self.custody.balance_of("alice"), 1000)
        self.assertEqual(self.custody.balance_of("vault"), 0)
        self.assertEqual(len(self.custody.entries), 1)

    def test_invalid_transfers(self):
        for source, destination, amount in (("alice", "vault", -1), ("alice", "alice", 10)):
            with self.assertRaises(ResourceError) as ctx:
                self.custody.transfer(source, destination, amount)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.TOKEN_TRANSFER_FAILED)

    def test_journal_verifies(self):
        self.custody.transfer("alice", "vault", 300)
        self.custody.transfer("vault", "treasury", 30)
        report = self.custody.verify_journal()
        self.assertEqual(report["integrity_status"], "OK")
        self.assertEqual(report["total_entries_verified"], 3)
        self.assertEqual(report["drift"], 0)
        self.assertEqual(self.custody.entries[0].previous_hash, GENESIS_HASH)

    def test_tampered_entry_is_detected(self):
        self.custody.transfer("alice", "vault", 300)
        self.custody.entries[1].amount = 3
        report = self.custody.verify_journal()
        self.assertEqual(report["integrity_status"], "ALERT")
        self.assertEqual(report["invalid_entries"], [1])

    def test_balance_drift_is_detected(self):
        self.custody.balances["alice"] += 1
        report = self.custody.verify_journal()
        self.assertEqual(report["drift"], 1)
        self.assertEqual(report["integrity_status"], "ALERT")


class TestDeriveAddress(unittest.TestCase):

    def test_deterministic_and_namespaced(self):
        first = derive_address("game", "casino_1", "alice", 0)
        self.assertEqual(first, derive_address("game", "casino_1", "alice", 0))
        self.assertTrue(first.startswith("game_"))
        self.assertEqual(len(first), len("game_") + 32)

    def test_parts_change_the_address(self):
        self.assertNotEqual(
            derive_address("game", "casino_1", "alice", 0),
            derive_address("game", "casino_1", "alice", 1),
        )
        self.assertNotEqual(derive_address("vault", "x"), derive_address("treasury", "x"))


class TestRecordStore(unittest.TestCase):

    def setUp(self):
        self.store = RecordStore()
        with self.store.transaction("game_a") as tx:
            tx.put("game_a", {"status": "ACTIVE"})

    def test_commit_on_clean_exit(self):
        self.assertEqual(self.store.get("game_a"), {"status": "ACTIVE"})
        self.assertIn("game_a", self.store)
        self.assertFalse(self.store.is_locked("game_a"))

    def test_error_discards_writes(self):
        with self.assertRaises(RuntimeError):
            with self.store.transaction("game_a") as tx:
                record = tx.get("game_a")
                record["status"] = "CLAIMED"
                tx.put("game_a", record)
                tx.put("game_b", {"status": "ACTIVE"})
                raise RuntimeError("custody failed")
        self.assertEqual(self.store.get("game_a"), {"status": "ACTIVE"})
        self.assertNotIn("game_b", self.store)
        self.assertFalse(self.store.is_locked("game_a"))

    def test_working_copy_is_isolated(self):
        with self.store.transaction("game_a") as tx:
            tx.get("game_a")["status"] = "RESOLVED"
            self.assertEqual(self.store.get("game_a"), {"status": "ACTIVE"})

    def test_snapshots_are_copies(self):
        self.store.get("game_a")["status"] = "CLAIMED"
        self.assertEqual(self.store.get("game_a"), {"status": "ACTIVE"})

    def test_locked_record_is_rejected(self):
        with self.store.transaction("game_a"):
            self.assertTrue(self.store.is_locked("game_a"))
            with self.assertRaises(StorageError) as ctx:
                with self.store.transaction("game_a"):
                    pass
            self.assertEqual(ctx.exception.code, CasinoErrorCode.CONCURRENT_MODIFICATION)
        self.assertFalse(self.store.is_locked("game_a"))

    def test_other_records_proceed(self):
        with self.store.transaction("game_a"):
            with self.store.transaction("game_b") as tx:
                tx.put("game_b", {"status": "CREATED"})
        self.assertEqual(len(self.store), 2)

    def test_require_and_exists(self):
        with self.store.transaction() as tx:
            self.assertTrue(tx.exists("game_a"))
            self.assertFalse(tx.exists("game_z"))
            with self.assertRaises(StorageError) as ctx:
                tx.require("game_z", CasinoErrorCode.GAME_NOT_FOUND)
            self.assertEqual(ctx.exception.code, CasinoErrorCode.GAME_NOT_FOUND)

    def test_values_by_namespace(self):
        with self.store.transaction() as tx:
            tx.put("player_1", {"games": 1})
        self.assertEqual(self.store.values("game"), [{"status": "ACTIVE"}])
        self.assertEqual(self.store.values("player"), [{"games": 1}])


if __name__ == "__main__":
    unittest.main()
