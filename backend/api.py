import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from did_registry import Chain, ErrorCode, InvalidArgumentError, Principal, Tx
from did_registry.config import settings

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("DIDRegistry.api")

chain = None

# Registry error -> HTTP status
ERROR_STATUS = {
    ErrorCode.NOT_AUTHORIZED: 403,
    ErrorCode.DID_EXISTS: 409,
    ErrorCode.DID_NOT_FOUND: 404,
    ErrorCode.CLAIM_NOT_FOUND: 404,
    ErrorCode.ALREADY_REVOKED: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    global chain
    logger.info("Starting DID Registry API...")

    chain = Chain(settings=settings)

    state_file = settings.STATE_FILE
    if state_file and state_file.exists():
        chain.load_state(str(state_file))
        logger.info(f"Registry state loaded from {state_file}")

    logger.info(f"Devnet ready with {len(chain.accounts)} accounts")

    yield

    if state_file:
        chain.save_state(str(state_file))
        logger.info(f"Registry state saved to {state_file}")
    logger.info("Shutting down...")

app = FastAPI(title="DID Registry API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ============================================================
# HELPERS
# ============================================================

def _require_chain() -> Chain:
    if chain is None:
        raise HTTPException(status_code=503, detail="Registry not initialized")
    return chain


def _registry_error(code: ErrorCode) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS[code],
        detail={"code": int(code), "error": code.name}
    )


def _persist(current: Chain):
    """Write the state file, if configured, after every mined block"""
    if settings.STATE_FILE:
        current.save_state(str(settings.STATE_FILE))


def _execute(method: str, args: List[Any], sender: str) -> Dict[str, Any]:
    """Mine one block holding a single contract call and unpack its receipt"""
    current = _require_chain()
    tx = Tx.contract_call(current.settings.CONTRACT_NAME, method, args, sender)
    block = current.mine_block([tx])
    _persist(current)
    receipt = block.receipts[0]

    if not receipt.accepted:
        raise HTTPException(status_code=400, detail=receipt.error)

    response = receipt.result
    if response.is_err:
        raise _registry_error(response.code)

    return {"ok": response.value, "block_height": block.height}


def _read(method: str, args: List[Any]) -> Any:
    current = _require_chain()
    return current.call_read_only(method, args, current.accounts["deployer"].address)


# ============================================================
# DID ENDPOINTS
# ============================================================

@app.post("/api/did/register")
async def register_did(did: str = Form(...), sender: str = Form(...)):
    """Register a DID; the sender becomes its owner"""
    return _execute("register-did", [did], sender)


@app.post("/api/did/transfer")
async def transfer_did(
    did: str = Form(...),
    new_owner: str = Form(...),
    sender: str = Form(...)
):
    """Transfer DID ownership (owner only)"""
    return _execute("transfer-did", [did, Principal(new_owner)], sender)


@app.get("/api/did/{did}")
async def get_did_info(did: str):
    response = _read("get-did-info", [did])
    if response.is_err:
        raise _registry_error(response.code)
    return response.value.to_dict()


# ============================================================
# CLAIM ENDPOINTS
# ============================================================

@app.post("/api/claim/add")
async def add_claim(
    did: str = Form(...),
    claim_type: str = Form(...),
    data: str = Form(...),
    expires_at: int = Form(...),
    sender: str = Form(...)
):
    """
    Attach a claim to a DID (owner only)

    Returns:
        The assigned claim id as "ok"
    """
    return _execute("add-claim", [did, claim_type, data, expires_at], sender)


@app.post("/api/claim/revoke")
async def revoke_claim(
    did: str = Form(...),
    claim_id: int = Form(...),
    sender: str = Form(...)
):
    """Revoke a claim (current DID owner only)"""
    return _execute("revoke-claim", [did, claim_id], sender)


@app.get("/api/did/{did}/claims")
async def list_claims(did: str):
    current = _require_chain()
    return {
        "did": did,
        "claim_count": _read("get-claim-count", [did]),
        "claims": [claim.to_dict() for claim in current.registry.list_claims(did)]
    }


@app.get("/api/did/{did}/claims/{claim_id}")
async def get_claim(did: str, claim_id: int):
    response = _read("get-claim", [did, claim_id])
    if response.is_err:
        raise _registry_error(response.code)
    return response.value.to_dict()


@app.get("/api/did/{did}/claims/{claim_id}/valid")
async def is_claim_valid(did: str, claim_id: int):
    return {
        "did": did,
        "claim_id": claim_id,
        "valid": _read("is-claim-valid", [did, claim_id]),
        "height": _require_chain().height
    }


# ============================================================
# CHAIN ENDPOINTS
# ============================================================

@app.post("/api/chain/advance")
async def advance_chain(blocks: int = Form(1)):
    """Mine empty blocks, e.g. to reach a claim's expiry height"""
    current = _require_chain()
    height = current.advance(blocks)
    _persist(current)
    return {"height": height}


@app.get("/api/accounts")
async def list_accounts():
    current = _require_chain()
    return {"accounts": [account.to_dict() for account in current.accounts.values()]}


@app.get("/api/registry/info")
async def get_registry_info():
    """Get registry information"""
    current = _require_chain()
    return {
        "contract": current.settings.CONTRACT_NAME,
        "statistics": current.get_statistics()
    }


if __name__ == "__main__":
    uvicorn.run("backend.api:app", host=settings.API_HOST, port=settings.API_PORT)
