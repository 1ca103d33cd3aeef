"""
=============================================================================
FAIRHOUSE - Almacén de Registros (Transaccional)
=============================================================================
Registros direccionados de forma determinista:

    address = "<namespace>_" + sha256("<namespace>:<parte>:<parte>...")[:32]

Cada operación del motor corre en una transacción:
1. Se toman los locks de los registros involucrados (sin espera: si otro
   los tiene, falla con CONCURRENT_MODIFICATION)
2. Se leen copias de trabajo
3. Las escrituras quedan en staging
4. Solo si el bloque termina sin error se confirman

Un error en cualquier punto descarta todo: nunca hay escrituras parciales.
=============================================================================
"""

import copy
import hashlib
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from .errors import CasinoErrorCode, StorageError

logger = logging.getLogger(__name__)


def derive_address(namespace: str, *parts: Any) -> str:
    """Dirección estable a partir del namespace y las semillas."""
    data = ":".join([namespace, *(str(part) for part in parts)])
    return f"{namespace}_{hashlib.sha256(data.encode()).hexdigest()[:32]}"


class Transaction:
    """Vista transaccional del almacén: lecturas aisladas, escrituras diferidas."""

    def __init__(self, store: "RecordStore"):
        self._store = store
        self._locked: List[str] = []
        self._working: Dict[str, Any] = {}
        self._staged: Dict[str, Any] = {}

    def lock(self, key: str) -> None:
        """Toma el lock de un registro adicional dentro de la transacción."""
        if key in self._locked:
            return
        self._store._acquire(key)
        self._locked.append(key)

    def get(self, key: str) -> Optional[Any]:
        """Copia de trabajo del registro (None si no existe)."""
        self.lock(key)
        if key in self._staged:
            return self._staged[key]
        if key not in self._working:
            record = self._store._records.get(key)
            self._working[key] = copy.deepcopy(record) if record is not None else None
        return self._working[key]

    def require(self, key: str, missing: CasinoErrorCode) -> Any:
        record = self.get(key)
        if record is None:
            raise StorageError(missing, key)
        return record

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def put(self, key: str, record: Any) -> None:
        self.lock(key)
        self._staged[key] = record

    def _commit(self) -> None:
        for key, record in self._staged.items():
            self._store._records[key] = record

    def _release(self) -> None:
        for key in self._locked:
            self._store._release(key)
        self._locked.clear()


class RecordStore:
    """
    Almacén en memoria con un lock por registro.

    Los locks son no bloqueantes: operaciones sobre registros distintos
    avanzan en paralelo, sobre el mismo registro se rechaza la segunda.
    """

    def __init__(self):
        self._records: Dict[str, Any] = {}
        self._locks: Set[str] = set()
        self._guard = threading.Lock()

    def _acquire(self, key: str) -> None:
        lock_key = f"lock:{key}"
        with self._guard:
            if lock_key in self._locks:
                logger.warning("[STORE] Record %s is locked by another operation", key)
                raise StorageError(CasinoErrorCode.CONCURRENT_MODIFICATION, key)
            self._locks.add(lock_key)

    def _release(self, key: str) -> None:
        with self._guard:
            self._locks.discard(f"lock:{key}")

    def is_locked(self, key: str) -> bool:
        return f"lock:{key}" in self._locks

    @contextmanager
    def transaction(self, *keys: str) -> Iterator[Transaction]:
        """
        Abre una transacción sobre los registros indicados.

        Raises:
            StorageError: CONCURRENT_MODIFICATION si algún registro está tomado
        """
        tx = Transaction(self)
        try:
            for key in keys:
                tx.lock(key)
            yield tx
            tx._commit()
        finally:
            tx._release()

    def get(self, key: str) -> Optional[Any]:
        """Snapshot de solo lectura (fuera de transacción)."""
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def values(self, namespace: str) -> List[Any]:
        prefix = f"{namespace}_"
        return [copy.deepcopy(record) for key, record in self._records.items() if key.startswith(prefix)]

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)
