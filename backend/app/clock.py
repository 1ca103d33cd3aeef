"""
=============================================================================
FAIRHOUSE - Reloj Confiable
=============================================================================
El motor nunca mide el tiempo por su cuenta: recibe un reloj que entrega
timestamps unix en segundos enteros. En pruebas se usa FixedClock.
=============================================================================
"""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """Reloj del sistema (producción)."""

    def now(self) -> int:
        return int(time.time())


class FixedClock:
    """Reloj controlable para pruebas deterministas."""

    def __init__(self, start: int = 1_700_000_000):
        self.current = start

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> int:
        self.current += seconds
        return self.current

    def set(self, timestamp: int) -> None:
        self.current = timestamp
