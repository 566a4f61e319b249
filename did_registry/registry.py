"""
DID Registry - Ownership records and verification claims for DIDs

Each call receives a CallContext (caller + current height) from the
execution substrate and either applies fully or leaves state untouched.

Contract functions:
- register-did, transfer-did, add-claim, revoke-claim (public)
- is-claim-valid, get-did-info, get-claim, get-claim-count (read-only)
"""

import json
import logging
import os
import tempfile
from typing import Optional, List, Dict, Any, Tuple, Sequence
from dataclasses import replace

from .config import RegistrySettings, settings as default_settings
from .errors import ErrorCode, InvalidArgumentError, Response
from .models import CallContext, ClaimRecord, DidRecord
from .principal import Principal

logger = logging.getLogger("DIDRegistry")

# contract name -> (method, argument count)
PUBLIC_FUNCTIONS: Dict[str, Tuple[str, int]] = {
    "register-did": ("register_did", 1),
    "transfer-did": ("transfer_did", 2),
    "add-claim": ("add_claim", 4),
    "revoke-claim": ("revoke_claim", 2),
}

READ_ONLY_FUNCTIONS: Dict[str, Tuple[str, int]] = {
    "is-claim-valid": ("is_claim_valid", 2),
    "get-did-info": ("get_did_info", 1),
    "get-claim": ("get_claim", 2),
    "get-claim-count": ("get_claim_count", 1),
}

STATE_VERSION = 1


class DIDRegistry:
    """
    Registry of DID ownership and claims

    Features:
    - Register DIDs (first caller becomes owner)
    - Transfer ownership
    - Add, query and revoke time-bounded claims
    - Export/Import full state as JSON
    """

    def __init__(self, settings: Optional[RegistrySettings] = None):
        self.settings = settings or default_settings
        self._dids: Dict[str, DidRecord] = {}
        self._claims: Dict[Tuple[str, int], ClaimRecord] = {}
        self._claim_nonces: Dict[str, int] = {}  # DID -> next claim id

    # ==================== DISPATCH ====================

    def call(
        self,
        function_name: str,
        ctx: CallContext,
        args: Sequence[Any] = (),
        read_only: bool = False
    ) -> Any:
        """
        Invoke a contract function by its name

        Args:
            function_name: Contract name, e.g. "register-did"
            ctx: Caller and height supplied by the substrate
            args: Positional arguments of the function
            read_only: Only allow read-only functions

        Returns:
            Whatever the function returns (Response, bool or int)
        """
        entry = READ_ONLY_FUNCTIONS.get(function_name)
        if entry is None and not read_only:
            entry = PUBLIC_FUNCTIONS.get(function_name)
        if entry is None:
            kind = "read-only function" if read_only else "function"
            raise InvalidArgumentError(f"Unknown {kind}: {function_name}")

        method_name, arity = entry
        if len(args) != arity:
            raise InvalidArgumentError(
                f"{function_name} expects {arity} arguments, got {len(args)}"
            )
        return getattr(self, method_name)(ctx, *args)

    # ==================== PUBLIC FUNCTIONS ====================

    def register_did(self, ctx: CallContext, did: str) -> Response:
        """
        Register a new DID owned by the caller

        Returns:
            ok(True), or err(DID_EXISTS) if the DID was ever registered
        """
        self._check_context(ctx)
        self._check_did(did)

        if did in self._dids:
            return self._reject("register-did", ErrorCode.DID_EXISTS, did)

        self._dids[did] = DidRecord(
            did=did,
            owner=ctx.caller,
            created_at=ctx.height,
            updated_at=ctx.height
        )
        self._claim_nonces[did] = 0
        logger.info(f"Registered {did} for {ctx.caller} at height {ctx.height}")
        return Response.ok(True)

    def transfer_did(self, ctx: CallContext, did: str, new_owner: Principal) -> Response:
        """
        Hand a DID over to another principal

        Only the current owner may transfer. Transferring to oneself is
        a normal transfer and still bumps updated_at.
        """
        self._check_context(ctx)
        self._check_did(did)
        if not isinstance(new_owner, Principal):
            raise InvalidArgumentError("new_owner must be a Principal")

        record = self._dids.get(did)
        if record is None:
            return self._reject("transfer-did", ErrorCode.DID_NOT_FOUND, did)
        if record.owner != ctx.caller:
            return self._reject("transfer-did", ErrorCode.NOT_AUTHORIZED, did)

        record.owner = new_owner
        record.updated_at = ctx.height
        logger.info(f"Transferred {did} to {new_owner} at height {ctx.height}")
        return Response.ok(True)

    def add_claim(
        self,
        ctx: CallContext,
        did: str,
        claim_type: str,
        data: str,
        expires_at: int
    ) -> Response:
        """
        Attach a claim to a DID

        Args:
            did: DID owned by the caller
            claim_type: Category label, e.g. "email-verification"
            data: Opaque payload
            expires_at: Height from which the claim is no longer valid.
                Stored as given; picking a future height is up to the caller.

        Returns:
            ok(claim_id) with ids counting up from 0 per DID
        """
        self._check_context(ctx)
        self._check_did(did)
        self._check_text("claim_type", claim_type, self.settings.MAX_CLAIM_TYPE_LENGTH)
        self._check_text("data", data, self.settings.MAX_CLAIM_DATA_LENGTH)
        self._check_uint("expires_at", expires_at)

        record = self._dids.get(did)
        if record is None:
            return self._reject("add-claim", ErrorCode.DID_NOT_FOUND, did)
        if record.owner != ctx.caller:
            return self._reject("add-claim", ErrorCode.NOT_AUTHORIZED, did)

        claim_id = self._claim_nonces.get(did, 0)
        self._claims[(did, claim_id)] = ClaimRecord(
            did=did,
            claim_id=claim_id,
            claim_type=claim_type,
            issuer=ctx.caller,
            data=data,
            expires_at=expires_at
        )
        self._claim_nonces[did] = claim_id + 1
        logger.info(f"Added claim {claim_id} ({claim_type}) to {did}, expires at {expires_at}")
        return Response.ok(claim_id)

    def revoke_claim(self, ctx: CallContext, did: str, claim_id: int) -> Response:
        """
        Revoke a claim; only the current DID owner may do so

        Checks run in order: DID exists, caller owns it, claim exists,
        claim not revoked yet. Revocation cannot be undone, so a second
        revoke returns err(ALREADY_REVOKED).
        """
        self._check_context(ctx)
        self._check_did(did)
        self._check_uint("claim_id", claim_id)

        record = self._dids.get(did)
        if record is None:
            return self._reject("revoke-claim", ErrorCode.DID_NOT_FOUND, did)
        if record.owner != ctx.caller:
            return self._reject("revoke-claim", ErrorCode.NOT_AUTHORIZED, did)

        claim = self._claims.get((did, claim_id))
        if claim is None:
            return self._reject("revoke-claim", ErrorCode.CLAIM_NOT_FOUND, did)
        if claim.revoked:
            return self._reject("revoke-claim", ErrorCode.ALREADY_REVOKED, did)

        claim.revoked = True
        logger.info(f"Revoked claim {claim_id} of {did} at height {ctx.height}")
        return Response.ok(True)

    # ==================== READ-ONLY FUNCTIONS ====================

    def is_claim_valid(self, ctx: CallContext, did: str, claim_id: int) -> bool:
        """True iff the claim exists, is not revoked and has not expired"""
        self._check_did(did)
        self._check_uint("claim_id", claim_id)

        claim = self._claims.get((did, claim_id))
        if claim is None:
            return False
        return claim.is_valid_at(ctx.height)

    def get_did_info(self, ctx: CallContext, did: str) -> Response:
        """ok(DidRecord copy) or err(DID_NOT_FOUND)"""
        self._check_did(did)

        record = self._dids.get(did)
        if record is None:
            return Response.err(ErrorCode.DID_NOT_FOUND)
        return Response.ok(replace(record))

    def get_claim(self, ctx: CallContext, did: str, claim_id: int) -> Response:
        """ok(ClaimRecord copy) or err(CLAIM_NOT_FOUND)"""
        self._check_did(did)
        self._check_uint("claim_id", claim_id)

        claim = self._claims.get((did, claim_id))
        if claim is None:
            return Response.err(ErrorCode.CLAIM_NOT_FOUND)
        return Response.ok(replace(claim))

    def get_claim_count(self, ctx: CallContext, did: str) -> int:
        """Number of claims ever issued for a DID (0 if unregistered)"""
        self._check_did(did)
        return self._claim_nonces.get(did, 0)

    # ==================== UTILITIES ====================

    def list_dids(self) -> List[DidRecord]:
        return [replace(record) for record in self._dids.values()]

    def list_claims(self, did: str) -> List[ClaimRecord]:
        """Claims of a DID ordered by claim id"""
        return [
            replace(self._claims[(did, claim_id)])
            for claim_id in range(self._claim_nonces.get(did, 0))
        ]

    def get_statistics(self) -> Dict[str, int]:
        """Get statistics about registered DIDs and claims"""
        active = sum(1 for record in self._dids.values() if record.active)
        revoked = sum(1 for claim in self._claims.values() if claim.revoked)
        return {
            "total_dids": len(self._dids),
            "active_dids": active,
            "total_claims": len(self._claims),
            "revoked_claims": revoked
        }

    def export_state(self) -> Dict[str, Any]:
        """Snapshot of the whole registry as JSON-compatible data"""
        return {
            "version": STATE_VERSION,
            "dids": [record.to_dict() for record in self._dids.values()],
            "claims": [claim.to_dict() for claim in self._claims.values()],
            "claim_nonces": dict(self._claim_nonces)
        }

    def import_state(self, data: Dict[str, Any], max_height: Optional[int] = None) -> None:
        """
        Replace the registry state with a snapshot from export_state()

        The snapshot is checked as a whole before anything is replaced.

        Args:
            data: Snapshot dict
            max_height: If given, no record may be created or updated after it
        """
        if not isinstance(data, dict):
            raise InvalidArgumentError("State snapshot must be a JSON object")
        if data.get("version") != STATE_VERSION:
            raise InvalidArgumentError(f"Unsupported state version: {data.get('version')!r}")

        try:
            dids = {}
            for item in data.get("dids", []):
                record = DidRecord.from_dict(item)
                self._check_record(record, max_height)
                if record.did in dids:
                    raise InvalidArgumentError(f"Duplicate DID in snapshot: {record.did}")
                dids[record.did] = record

            nonces = {}
            for did, count in data.get("claim_nonces", {}).items():
                self._check_uint("claim counter", count)
                nonces[did] = count

            claims = {}
            for item in data.get("claims", []):
                claim = ClaimRecord.from_dict(item)
                self._check_claim(claim)
                claims[(claim.did, claim.claim_id)] = claim
        except InvalidArgumentError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidArgumentError(f"Malformed state snapshot: {e}") from e

        if set(nonces) != set(dids):
            raise InvalidArgumentError("Claim counters do not match registered DIDs")
        for did, count in nonces.items():
            expected = {(did, claim_id) for claim_id in range(count)}
            present = {key for key in claims if key[0] == did}
            if present != expected:
                raise InvalidArgumentError(f"Claim ids of {did} are not 0..{count - 1}")
        if any(did not in dids for did, _ in claims):
            raise InvalidArgumentError("Claim attached to an unregistered DID")

        self._dids = dids
        self._claims = claims
        self._claim_nonces = nonces
        logger.info(f"Imported state: {len(dids)} DIDs, {len(claims)} claims")

    def save_state(self, filepath: str):
        """Save a JSON snapshot of the registry to file"""
        write_json_atomic(filepath, self.export_state())

    def load_state(self, filepath: str):
        """Load a JSON snapshot written by save_state()"""
        with open(filepath, 'r') as f:
            data = json.load(f)
        self.import_state(data)

    # ==================== VALIDATION ====================

    def _check_record(self, record: DidRecord, max_height: Optional[int]):
        self._check_did(record.did)
        self._check_uint("created_at", record.created_at)
        self._check_uint("updated_at", record.updated_at)
        if record.created_at > record.updated_at:
            raise InvalidArgumentError(f"{record.did} updated before it was created")
        if max_height is not None and record.updated_at > max_height:
            raise InvalidArgumentError(f"{record.did} updated after height {max_height}")
        if record.active is not True:
            raise InvalidArgumentError(f"{record.did} must be active")

    def _check_claim(self, claim: ClaimRecord):
        self._check_did(claim.did)
        self._check_uint("claim_id", claim.claim_id)
        self._check_text("claim_type", claim.claim_type, self.settings.MAX_CLAIM_TYPE_LENGTH)
        self._check_text("data", claim.data, self.settings.MAX_CLAIM_DATA_LENGTH)
        self._check_uint("expires_at", claim.expires_at)
        if not isinstance(claim.revoked, bool):
            raise InvalidArgumentError("revoked must be a boolean")

    def _reject(self, function_name: str, code: ErrorCode, did: str) -> Response:
        logger.warning(f"{function_name} rejected for {did}: {code.name} ({int(code)})")
        return Response.err(code)

    @staticmethod
    def _check_context(ctx: CallContext):
        if not isinstance(ctx, CallContext) or not isinstance(ctx.caller, Principal):
            raise InvalidArgumentError("A CallContext with a Principal caller is required")
        DIDRegistry._check_uint("height", ctx.height)

    def _check_did(self, did: str):
        self._check_text("did", did, self.settings.MAX_DID_LENGTH)
        if not did:
            raise InvalidArgumentError("did must not be empty")

    @staticmethod
    def _check_text(name: str, value: str, max_length: int):
        if not isinstance(value, str):
            raise InvalidArgumentError(f"{name} must be a string")
        if len(value) > max_length:
            raise InvalidArgumentError(f"{name} exceeds {max_length} characters")
        if any(not 32 <= ord(ch) < 127 for ch in value):
            raise InvalidArgumentError(f"{name} must be printable ASCII")

    @staticmethod
    def _check_uint(name: str, value: int):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidArgumentError(f"{name} must be a non-negative integer")


def write_json_atomic(filepath: str, data: Dict[str, Any]):
    """
    Write JSON to `filepath` through a temp file in the same directory

    The target is replaced only once the new content is fully on disk,
    so a crash mid-write leaves the previous file intact.
    """
    directory = os.path.dirname(os.path.abspath(filepath))
    temp_file = tempfile.NamedTemporaryFile(
        'w', dir=directory, prefix=".state-", suffix=".tmp", delete=False
    )
    try:
        with temp_file:
            json.dump(data, temp_file, indent=2)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_file.name, filepath)
    except BaseException:
        os.unlink(temp_file.name)
        raise
