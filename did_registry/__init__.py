"""
Decentralized Identifier (DID) Registry
=======================================

Records ownership of DIDs and lets owners attach, query and revoke
time-bounded verification claims.

Components:
- DIDRegistry: Ownership and claim state machine
- DidRecord / ClaimRecord: Stored records
- Principal: Opaque caller identity (Ethereum-style address)
- Response / ErrorCode: ok/err outcome with stable numeric codes
- Chain: Block/transaction substrate that drives the registry

Error codes:
- 100 NOT_AUTHORIZED, 101 DID_EXISTS, 102 DID_NOT_FOUND,
  103 CLAIM_NOT_FOUND, 104 ALREADY_REVOKED
"""

from .errors import ErrorCode, Response, RegistryError, InvalidArgumentError
from .principal import Principal
from .models import CallContext, DidRecord, ClaimRecord
from .config import RegistrySettings, settings
from .registry import DIDRegistry, PUBLIC_FUNCTIONS, READ_ONLY_FUNCTIONS
from .chain import Chain, Tx, Block, Receipt, DevnetAccount

__version__ = "1.0.0"
__all__ = [
    # Core
    "DIDRegistry",
    "DidRecord",
    "ClaimRecord",
    "CallContext",
    "PUBLIC_FUNCTIONS",
    "READ_ONLY_FUNCTIONS",

    # Identity
    "Principal",

    # Outcomes
    "ErrorCode",
    "Response",
    "RegistryError",
    "InvalidArgumentError",

    # Config
    "RegistrySettings",
    "settings",

    # Substrate
    "Chain",
    "Tx",
    "Block",
    "Receipt",
    "DevnetAccount"
]
