"""
=============================================================================
FAIRHOUSE - Instancias Globales del Servidor
=============================================================================
Motor, custodia y archivo compartidos por la API REST y Socket.IO.
Las pruebas reemplazan las instancias con set_engine / set_archive.
=============================================================================
"""

from typing import Optional

from .clock import Clock
from .custody import CustodyLedger
from .engine import CasinoEngine
from .repository import ArchiveRepository

_engine: Optional[CasinoEngine] = None
_archive: Optional[ArchiveRepository] = None


def build_engine(clock: Optional[Clock] = None) -> CasinoEngine:
    """Motor con el libro de custodia en memoria."""
    return CasinoEngine(CustodyLedger(clock), clock=clock)


def get_engine() -> CasinoEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def set_engine(engine: Optional[CasinoEngine]) -> None:
    global _engine
    _engine = engine


def get_archive() -> Optional[ArchiveRepository]:
    """Archivo de auditoría; None si está deshabilitado."""
    return _archive


def set_archive(archive: Optional[ArchiveRepository]) -> None:
    global _archive
    _archive = archive
