"""
=============================================================================
FAIRHOUSE - Compromiso de Equidad (Commit-Reveal)
=============================================================================
Algoritmo:
1. El operador publica SHA256(server_seed) al crear la apuesta
2. El jugador aporta su client_seed en ese mismo momento
3. Al resolver, el operador revela server_seed
4. Se verifica que SHA256(server_seed) == hash comprometido
5. El resultado sale de SHA256("{server_seed}-{client_seed}-{nonce}")

IMPORTANTE: esto es una prueba de que el secreto no cambió después de la
apuesta, NO una fuente de entropía impredecible. Dados los tres valores el
resultado es totalmente determinista. La única protección contra
manipulación posterior es la verificación del compromiso; el client_seed
solo aporta impredecibilidad si llega antes de revelar el secreto.
=============================================================================
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .arithmetic import U64_MAX
from .errors import CasinoErrorCode, FairnessError, ValidationError


def hash_server_seed(server_seed: str) -> str:
    """SHA-256 del seed, codificado en hex (minúsculas)."""
    return hashlib.sha256(server_seed.encode()).hexdigest()


def generate_server_seed() -> str:
    """
    Genera un seed de servidor para el operador.
    El motor nunca lo llama: el secreto siempre llega desde afuera.
    """
    return secrets.token_hex(32)


def derive_outcome(server_seed: str, client_seed: str, nonce: int) -> bytes:
    """
    Digest SHA-256 de "{server_seed}-{client_seed}-{nonce}".
    Única fuente de "aleatoriedad" del motor.
    """
    combined = f"{server_seed}-{client_seed}-{nonce}"
    return hashlib.sha256(combined.encode()).digest()


@dataclass
class ProvableFairData:
    """
    Datos de equidad asociados a un juego.

    server_seed_hash es inmutable una vez fijado; server_seed se escribe una
    sola vez (al revelar).
    """
    server_seed_hash: str
    client_seed: str
    nonce: int = 0
    server_seed: Optional[str] = None

    @classmethod
    def commit(cls, server_seed_hash: str, client_seed: str, nonce: int = 0) -> "ProvableFairData":
        """
        Guarda el compromiso al crear el juego.
        No se verifica nada todavía (modelo trust-on-reveal).
        """
        return cls(server_seed_hash=server_seed_hash, client_seed=client_seed, nonce=nonce)

    @property
    def is_revealed(self) -> bool:
        return self.server_seed is not None

    def verify(self, revealed_seed: str) -> bool:
        """
        Compara SHA256(revealed_seed) contra el hash comprometido.
        Igualdad exacta de strings: mayúsculas u otra codificación NO coinciden.
        """
        computed = hash_server_seed(revealed_seed)
        return secrets.compare_digest(computed.encode(), self.server_seed_hash.encode())

    def derive_outcome(self, revealed_seed: str, nonce: Optional[int] = None) -> bytes:
        if nonce is None:
            nonce = self.nonce
        return derive_outcome(revealed_seed, self.client_seed, nonce)

    def reveal(self, revealed_seed: str, nonce: int) -> bytes:
        """
        Verifica el seed, lo registra (una sola vez) y devuelve el digest.

        Raises:
            ValidationError: nonce fuera de u64 o seed ya revelado
            FairnessError: el seed no corresponde al compromiso
        """
        if nonce < 0 or nonce > U64_MAX:
            raise ValidationError(CasinoErrorCode.INVALID_NONCE)
        if self.is_revealed:
            raise ValidationError(CasinoErrorCode.INVALID_SERVER_SEED, "server seed already revealed")
        if not self.verify(revealed_seed):
            raise FairnessError(CasinoErrorCode.PROVABLE_FAIRNESS_VERIFICATION_FAILED)

        digest = derive_outcome(revealed_seed, self.client_seed, nonce)
        self.server_seed = revealed_seed
        self.nonce = nonce
        return digest

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_seed_hash": self.server_seed_hash,
            "client_seed": self.client_seed,
            "nonce": self.nonce,
            "server_seed": self.server_seed,
        }
