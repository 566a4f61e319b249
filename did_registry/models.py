"""
Registry records

DidRecord and ClaimRecord are the two stored record types. CallContext
is what the execution substrate hands to every registry call.
"""

from typing import Dict, Any
from dataclasses import dataclass

from .principal import Principal


@dataclass(frozen=True)
class CallContext:
    """Invoking principal and current logical height for one call"""
    caller: Principal
    height: int


@dataclass
class DidRecord:
    """
    Ownership record of a registered DID

    `did` and `created_at` never change. `owner` and `updated_at` change
    on transfer. `active` stays True for every registered DID.
    """
    did: str
    owner: Principal
    created_at: int
    updated_at: int
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "owner": self.owner.address,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "active": self.active
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DidRecord":
        return cls(
            did=data["did"],
            owner=Principal(data["owner"]),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            active=data.get("active", True)
        )


@dataclass
class ClaimRecord:
    """Time-bounded verification claim attached to a DID"""
    did: str
    claim_id: int
    claim_type: str
    issuer: Principal
    data: str
    expires_at: int
    revoked: bool = False

    def is_valid_at(self, height: int) -> bool:
        """Not revoked and not yet expired at `height`"""
        return not self.revoked and height < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "did": self.did,
            "claim_id": self.claim_id,
            "claim_type": self.claim_type,
            "issuer": self.issuer.address,
            "data": self.data,
            "expires_at": self.expires_at,
            "revoked": self.revoked
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimRecord":
        return cls(
            did=data["did"],
            claim_id=data["claim_id"],
            claim_type=data["claim_type"],
            issuer=Principal(data["issuer"]),
            data=data["data"],
            expires_at=data["expires_at"],
            revoked=data.get("revoked", False)
        )
