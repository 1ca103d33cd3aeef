"""
=============================================================================
FAIRHOUSE - Custodia de Fondos
=============================================================================
Interfaz del servicio de transferencias (vault, treasury, cuentas de
jugadores) y un libro en memoria que la implementa.

Cada transferencia confirmada queda en un diario encadenado por hash:
entry_hash = sha256(datos de la entrada + previous_hash). Alterar una
entrada rompe la cadena desde ese punto.

Invariante del libro: sum(balances) == sum(depósitos).
=============================================================================
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol

from .arithmetic import checked_add, checked_sub
from .clock import Clock, SystemClock
from .errors import CasinoArithmeticError, CasinoErrorCode, ResourceError

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


class FundCustody(Protocol):
    """Servicio externo que mueve fondos entre cuentas."""

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, source: str, destination: str, amount: int, memo: str = "") -> "TransferEntry":
        ...


@dataclass
class TransferEntry:
    """Entrada del diario de custodia."""
    sequence: int
    timestamp: int
    source: Optional[str]            # None = depósito externo
    destination: str
    amount: int
    memo: str
    previous_hash: str
    entry_hash: str = ""

    def compute_entry_hash(self) -> str:
        """Hash de la entrada encadenado al anterior."""
        data = {
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "source": self.source,
            "destination": self.destination,
            "amount": self.amount,
            "memo": self.memo,
            "previous_hash": self.previous_hash,
        }
        return hashlib.sha256(json.dumps(data, sort_keys=True).encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CustodyLedger:
    """
    Implementación en memoria de FundCustody.

    Las transferencias son todo-o-nada: si la fuente no tiene saldo
    suficiente no se mueve nada y se lanza ResourceError.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.balances: Dict[str, int] = {}
        self.entries: List[TransferEntry] = []
        self.total_deposited: int = 0

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def deposit(self, account: str, amount: int, memo: str = "deposit") -> TransferEntry:
        """Acredita fondos desde fuera del sistema (fondeo de cuentas)."""
        if amount <= 0:
            raise ResourceError(CasinoErrorCode.TOKEN_TRANSFER_FAILED, "deposit amount must be positive")
        self.balances[account] = checked_add(self.balance_of(account), amount)
        self.total_deposited = checked_add(self.total_deposited, amount)
        entry = self._append(None, account, amount, memo)
        logger.info("[CUSTODY] Deposit %s -> %s (%s)", amount, account, memo)
        return entry

    def transfer(self, source: str, destination: str, amount: int, memo: str = "") -> TransferEntry:
        """
        Mueve fondos de source a destination.

        Raises:
            ResourceError: INSUFFICIENT_VAULT_FUNDS si la fuente no alcanza,
            TOKEN_TRANSFER_FAILED si el monto o las cuentas son inválidos
        """
        if amount < 0 or source == destination:
            raise ResourceError(
                CasinoErrorCode.TOKEN_TRANSFER_FAILED,
                f"invalid transfer {source} -> {destination} ({amount})"
            )

        available = self.balance_of(source)
        try:
            remaining = checked_sub(available, amount)
        except CasinoArithmeticError:
            logger.warning("[CUSTODY] Rejected %s -> %s: %s > balance %s", source, destination, amount, available)
            raise ResourceError(
                CasinoErrorCode.INSUFFICIENT_VAULT_FUNDS,
                f"{source} holds {available}, needs {amount}"
            ) from None

        credited = checked_add(self.balance_of(destination), amount)
        self.balances[source] = remaining
        self.balances[destination] = credited

        entry = self._append(source, destination, amount, memo)
        logger.info("[CUSTODY] Transfer %s: %s -> %s (%s)", amount, source, destination, memo)
        return entry

    def _append(self, source: Optional[str], destination: str, amount: int, memo: str) -> TransferEntry:
        previous_hash = self.entries[-1].entry_hash if self.entries else GENESIS_HASH
        entry = TransferEntry(
            sequence=len(self.entries),
            timestamp=self.clock.now(),
            source=source,
            destination=destination,
            amount=amount,
            memo=memo,
            previous_hash=previous_hash,
        )
        entry.entry_hash = entry.compute_entry_hash()
        self.entries.append(entry)
        return entry

    def verify_journal(self) -> Dict[str, Any]:
        """
        Verifica la cadena de hashes y que los saldos cuadren con los depósitos.
        """
        invalid_entries = []
        previous_hash = GENESIS_HASH
        for entry in self.entries:
            if entry.previous_hash != previous_hash or entry.compute_entry_hash() != entry.entry_hash:
                invalid_entries.append(entry.sequence)
            previous_hash = entry.entry_hash

        drift = sum(self.balances.values()) - self.total_deposited

        return {
            "total_entries_verified": len(self.entries),
            "invalid_entries": invalid_entries,
            "total_deposited": self.total_deposited,
            "drift": drift,
            "integrity_status": "OK" if drift == 0 and not invalid_entries else "ALERT",
        }

    def get_summary(self) -> Dict[str, Any]:
        return {
            "accounts": len(self.balances),
            "total_entries": len(self.entries),
            "total_deposited": self.total_deposited,
            "last_entry": self.entries[-1].entry_hash if self.entries else None,
        }
