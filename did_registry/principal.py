"""
Principal - Opaque caller identity for the DID Registry

A principal is an Ethereum-style account address. The registry only
compares principals for equality; the address is normalized to lowercase
once, at construction.
"""

import re
import hashlib
from dataclasses import dataclass

# Ethereum compatibility
from eth_account import Account

from .errors import InvalidArgumentError


_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class Principal:
    """Identity of a caller, owner or issuer"""
    address: str

    def __post_init__(self):
        if not isinstance(self.address, str) or not _ADDRESS_RE.match(self.address):
            raise InvalidArgumentError(f"Invalid principal address: {self.address!r}")
        object.__setattr__(self, "address", self.address.lower())

    def __str__(self) -> str:
        return self.address

    # ==================== CONSTRUCTORS ====================

    @classmethod
    def from_private_key(cls, private_key: str) -> "Principal":
        """
        Derive the principal controlled by an Ethereum private key

        Args:
            private_key: Ethereum private key (hex string with 0x prefix)

        Returns:
            Principal for the key's address
        """
        account = Account.from_key(private_key)
        return cls(account.address)

    @classmethod
    def generate(cls) -> "Principal":
        """Create a principal for a fresh random account"""
        return cls(Account.create().address)

    @classmethod
    def from_seed(cls, seed: str) -> "Principal":
        """Deterministic principal, handy for fixtures"""
        return cls.from_private_key(seed_to_private_key(seed))


def seed_to_private_key(seed: str) -> str:
    """Derive a deterministic private key from a seed string"""
    return "0x" + hashlib.sha256(seed.encode()).hexdigest()
