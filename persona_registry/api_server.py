"""
Persona Registry API Server

FastAPI backend integrating:
- Ed25519 auth (from auth.py) as the caller identity for writes
- Persona registry (set / get)
- Witness chain (tamper-evident event log for indexers)

Run: uvicorn persona_registry.api_server:app --reload
"""
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from persona_registry.auth import AgentAuth, InvalidPublicKey
from persona_registry.config import HOST, PERSONA_VERSION, PORT, get_cors_origins, get_db_path
from persona_registry.context import CallerContext
from persona_registry.events import CallLog, FanoutSink, LoggerSink, PERSONA_SET_ACTION, WitnessSink
from persona_registry.observability import configure_logging, configure_observability, instrument_app
from persona_registry.registry import InvalidInput, PersonaRegistry
from persona_registry.store import SQLiteStore
from persona_registry.witness import WitnessChain

logger = logging.getLogger(__name__)

# =============================================================================
# SETUP
# =============================================================================

DB_PATH = get_db_path()
DB_PATH.parent.mkdir(parents=True, exist_ok=True)

_witness = WitnessChain(db_path=DB_PATH)
_auth = AgentAuth(db_path=DB_PATH, witness=_witness)
_store = SQLiteStore(DB_PATH)
_store.initialize()

# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    public_key_hex: str

class ChallengeRequest(BaseModel):
    address: str

class VerifyRequest(BaseModel):
    address: str
    signature_hex: str

class SetPersonaRequest(BaseModel):
    cid: str

class SetPersonaResponse(BaseModel):
    account_id: str
    cid: str
    logs: List[str]

class PersonaResponse(BaseModel):
    account_id: str
    cid: Optional[str] = None

# =============================================================================
# CALLER DEPENDENCY
# =============================================================================

async def get_caller(authorization: Optional[str] = Header(None)) -> CallerContext:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = authorization[7:] if authorization.startswith("Bearer ") else authorization
    caller = CallerContext.from_token(_auth, token)
    if caller is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return caller

# =============================================================================
# APP
# =============================================================================

configure_logging()
configure_observability()

app = FastAPI(
    title="Persona Registry",
    description="Per-account persona CID registry",
    version=PERSONA_VERSION,
    docs_url="/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

instrument_app(app)


@app.middleware("http")
async def enforce_https(request: Request, call_next):
    if os.environ.get("ENFORCE_HTTPS", "false").lower() == "true":
        if request.headers.get("x-forwarded-proto") != "https":
            return JSONResponse(status_code=400, content={"error": "HTTPS required"})
    return await call_next(request)

# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post("/auth/register")
async def register_agent(req: RegisterRequest):
    try:
        address = _auth.register(req.name, req.public_key_hex)
    except InvalidPublicKey as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"address": address}


@app.post("/auth/challenge")
async def create_challenge(req: ChallengeRequest):
    try:
        challenge = _auth.create_challenge(req.address)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"challenge_hex": challenge.hex()}


@app.post("/auth/verify")
async def verify_challenge(req: VerifyRequest):
    result = _auth.verify_challenge(req.address, req.signature_hex)
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error)
    return {"token": result.token, "expires_at": result.expires_at,
            "agent": {"address": result.agent.address, "name": result.agent.name}}

# =============================================================================
# PERSONA ENDPOINTS
# =============================================================================

@app.post("/persona", response_model=SetPersonaResponse)
async def set_persona(req: SetPersonaRequest, caller: CallerContext = Depends(get_caller)):
    call_log = CallLog()
    registry = PersonaRegistry(
        store=_store,
        sink=FanoutSink(call_log, LoggerSink(), WitnessSink(_witness)),
        context=caller,
    )
    try:
        registry.set_persona(req.cid)
    except InvalidInput as e:
        logger.info("rejected persona write from %s: %s", caller.current_caller(), e)
        raise HTTPException(status_code=400, detail=str(e))
    return SetPersonaResponse(account_id=caller.current_caller(), cid=req.cid, logs=call_log.logs)


@app.get("/persona/{account_id}", response_model=PersonaResponse)
async def get_persona(account_id: str):
    registry = PersonaRegistry(store=_store, sink=CallLog())
    return PersonaResponse(account_id=account_id, cid=registry.get_persona(account_id))

# =============================================================================
# INDEXER FEED
# =============================================================================

@app.get("/events")
async def list_events(limit: int = 50, offset: int = 0, account_id: Optional[str] = None):
    limit = max(1, min(limit, 500))
    entries = _witness.list_entries(
        account_id=account_id, action=PERSONA_SET_ACTION, limit=limit, offset=max(0, offset),
    )
    return {"entries": entries, "count": len(entries)}


@app.get("/events/verify")
async def verify_events():
    entries = _witness.all_entries()
    return {"valid": _witness.verify_chain(entries), "entries": len(entries)}

# =============================================================================
# HEALTH
# =============================================================================

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "persona-registry", "version": PERSONA_VERSION,
            "personas": len(_store), "timestamp": datetime.now(timezone.utc).isoformat()}


def main() -> None:
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
