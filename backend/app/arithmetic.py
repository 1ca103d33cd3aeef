"""
=============================================================================
FAIRHOUSE - Aritmética Acotada (u64 / i64)
=============================================================================
Los montos se expresan en la unidad mínima del token y se acotan a u64.
Python no desborda enteros, así que los límites se aplican aquí de forma
explícita:

- Cálculo de payouts y fees: desborde = error (ArithmeticOverflow)
- Estadísticas acumuladas: aritmética saturante (nunca error)
=============================================================================
"""

from .errors import CasinoArithmeticError, CasinoErrorCode


U64_MAX = 2 ** 64 - 1
U32_MAX = 2 ** 32 - 1
I64_MAX = 2 ** 63 - 1
I64_MIN = -(2 ** 63)


# =============================================================================
# OPERACIONES VERIFICADAS (payout / fees)
# =============================================================================

def checked_mul(a: int, b: int, limit: int = U64_MAX) -> int:
    """Multiplica y rechaza el resultado si excede el límite."""
    result = a * b
    if result > limit:
        raise CasinoArithmeticError(CasinoErrorCode.ARITHMETIC_OVERFLOW)
    return result


def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    """Suma y rechaza el resultado si excede el límite."""
    result = a + b
    if result > limit:
        raise CasinoArithmeticError(CasinoErrorCode.ARITHMETIC_OVERFLOW)
    return result


def checked_sub(a: int, b: int) -> int:
    """Resta sin permitir valores negativos."""
    if b > a:
        raise CasinoArithmeticError(CasinoErrorCode.ARITHMETIC_UNDERFLOW)
    return a - b


def basis_points_of(amount: int, bp: int) -> int:
    """
    Aplica una tasa en puntos básicos: (amount * bp) / 10000.
    El producto intermedio también debe caber en u64.
    """
    return checked_mul(amount, bp) // 10000


# =============================================================================
# OPERACIONES SATURANTES (estadísticas)
# =============================================================================

def saturating_add(a: int, b: int, limit: int = U64_MAX) -> int:
    return min(a + b, limit)


def saturating_sub(a: int, b: int) -> int:
    return max(a - b, 0)


def saturating_add_signed(a: int, b: int) -> int:
    """Suma con signo acotada a i64 (para total_profit)."""
    return max(I64_MIN, min(a + b, I64_MAX))
