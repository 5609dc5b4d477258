from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError

from safeharbor import __version__
from safeharbor.addressing import find_adoption_address, find_agreement_address
from safeharbor.errors import (
    CONFLICT_KINDS,
    FORBIDDEN_KINDS,
    NOT_FOUND_KINDS,
    ErrorKind,
    SafeHarborError,
    fail,
)
from safeharbor.events import EventSink
from safeharbor.hashing import network_id_hash
from safeharbor.program import SafeHarborProgram
from safeharbor.pubkey import Pubkey
from safeharbor.validation import ValidationPolicy

from . import config
from .db import Database, SqliteEventLog, SqliteRecordStore
from .log_backends import get_event_backend
from .logging_config import audit_log, configure_logging, set_request_id
from .models import AdoptionRequest, AgreementRequest, NetworksRequest, SignedRequest
from .security import authenticate


def status_for(kind: ErrorKind) -> int:
    if kind in FORBIDDEN_KINDS:
        return 403
    if kind in NOT_FOUND_KINDS:
        return 404
    if kind in CONFLICT_KINDS:
        return 409
    return 400


def _parse(model: type, payload: dict) -> BaseModel:
    """Validate a signed payload; shape errors surface as 422 like any request body."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors())


def _address(value: str, field: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise fail(ErrorKind.INVALID_ACCOUNT_PARAMS, f"{field} is not a valid address", field)


def _run(operation: str, signer: Pubkey, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except SafeHarborError as e:
        audit_log.mutation_rejected(operation, str(signer), e.kind.value, e.field)
        raise


def create_app(
    db_path: Optional[str] = None,
    program_id: Optional[str] = None,
    policy: Optional[ValidationPolicy] = None,
    event_backend: Optional[str] = None,
    max_skew: Optional[int] = None,
) -> FastAPI:
    """
    Build the service around one SQLite file.

    Every argument defaults to its SAFEHARBOR_* environment setting.
    """
    db = Database(db_path or config.DB_PATH)
    events: EventSink = get_event_backend(db, event_backend or config.EVENT_BACKEND)
    program = SafeHarborProgram(
        store=SqliteRecordStore(db),
        events=events,
        program_id=config.program_id(program_id),
        policy=policy or config.build_policy(),
    )
    skew = config.MAX_CLOCK_SKEW_SECONDS if max_skew is None else max_skew

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.is_production():
            failed = [name for name, ok in config.validate_config().items() if not ok]
            if failed:
                raise RuntimeError(f"configuration checks failed: {failed}")
        db.init_db()
        yield
        db.close_connection()

    app = FastAPI(title="SafeHarbor Registry", version=__version__, lifespan=lifespan)
    app.state.db = db
    app.state.program = program

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id"))
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    @app.exception_handler(SafeHarborError)
    async def _safeharbor_error(request: Request, exc: SafeHarborError):
        return JSONResponse(status_code=status_for(exc.kind), content=exc.to_dict())

    # ============================================================
    # Registry
    # ============================================================

    @app.post("/registry/initialize")
    def registry_initialize(req: SignedRequest):
        signer = authenticate("initialize", req, skew, db=db)
        body = _parse(NetworksRequest, req.payload)
        event = _run("initialize", signer, lambda: program.initialize(signer, body.networks))
        audit_log.registry_changed(str(event.registry), str(event.owner), "initialized", event.networks)
        return event.to_dict()

    @app.post("/registry/networks/recognize")
    def registry_recognize(req: SignedRequest):
        signer = authenticate("set_recognized_networks", req, skew, db=db)
        body = _parse(NetworksRequest, req.payload)
        event = _run("set_recognized_networks", signer,
                     lambda: program.set_recognized_networks(signer, body.networks))
        audit_log.registry_changed(str(event.registry), str(event.owner), "recognized", event.networks)
        return event.to_dict()

    @app.post("/registry/networks/unrecognize")
    def registry_unrecognize(req: SignedRequest):
        signer = authenticate("set_unrecognized_networks", req, skew, db=db)
        body = _parse(NetworksRequest, req.payload)
        event = _run("set_unrecognized_networks", signer,
                     lambda: program.set_unrecognized_networks(signer, body.networks))
        audit_log.registry_changed(str(event.registry), str(event.owner), "unrecognized", event.networks)
        return event.to_dict()

    @app.get("/registry")
    def registry_get():
        registry = program.get_registry()
        if registry is None:
            raise fail(ErrorKind.REGISTRY_NOT_INITIALIZED, "registry has not been initialized", "registry")
        d = registry.to_dict()
        d["address"] = str(program.registry_address())
        return d

    # ============================================================
    # Agreements
    # ============================================================

    @app.post("/agreements")
    def agreements_post(req: SignedRequest):
        signer = authenticate("create_or_update_agreement", req, skew, db=db)
        body = _parse(AgreementRequest, req.payload)
        event = _run("create_or_update_agreement", signer, lambda: program.create_or_update_agreement(
            caller=signer,
            nonce=body.nonce,
            data=body.data,
            owner=_address(body.owner, "owner") if body.owner else None,
            update_type=body.update_type,
            creator=_address(body.creator, "creator") if body.creator else None,
        ))
        audit_log.agreement_updated(str(event.agreement), str(event.owner), event.update_type, event.data_hash)
        return event.to_dict()

    @app.get("/agreements/{address}")
    def agreements_get(address: str):
        record = program.get_agreement(_address(address, "address"))
        if record is None:
            raise fail(ErrorKind.AGREEMENT_NOT_INITIALIZED, f"no agreement at {address}", "address")
        d = record.to_dict()
        d["address"] = address
        d["data_hash"] = record.data_hash()
        return d

    @app.get("/addresses/agreement")
    def addresses_agreement(creator: str, nonce: int):
        address, bump = find_agreement_address(_address(creator, "creator"), nonce, program.program_id)
        return {"address": str(address), "bump": bump}

    # ============================================================
    # Adoptions
    # ============================================================

    @app.post("/adoptions")
    def adoptions_post(req: SignedRequest):
        signer = authenticate("create_or_update_adoption", req, skew, db=db)
        body = _parse(AdoptionRequest, req.payload)
        event = _run("create_or_update_adoption", signer, lambda: program.create_or_update_adoption(
            caller=signer,
            network_id=body.network_id,
            update_type=body.update_type,
            payload=body.payload,
            network_id_hash=body.network_id_hash,
        ))
        update_type = getattr(event, "update_type", "InitializeOrUpdate")
        audit_log.adoption_updated(str(event.adoption), str(event.adopter), event.network_id,
                                   update_type, str(event.new_agreement))
        return event.to_dict()

    @app.get("/adoptions/{address}")
    def adoptions_get(address: str):
        record = program.get_adoption(_address(address, "address"))
        if record is None:
            raise fail(ErrorKind.ADOPTION_ENTRY_NOT_FOUND, f"no adoption at {address}", "address")
        d = record.to_dict()
        d["address"] = address
        return d

    @app.get("/addresses/adoption")
    def addresses_adoption(adopter: str, network_id: str):
        address, bump = find_adoption_address(_address(adopter, "adopter"), network_id, program.program_id)
        return {
            "address": str(address),
            "bump": bump,
            "network_id_hash": network_id_hash(network_id).hex(),
        }

    # ============================================================
    # Events and Health
    # ============================================================

    @app.get("/events")
    def events_get(event_type: Optional[str] = None, limit: int = Query(100, ge=1, le=1000)):
        return program.events.query(event_type, limit)

    @app.get("/health")
    def health():
        status = {
            "status": "ok",
            "version": __version__,
            "env": config.ENV,
            "program_id": str(program.program_id),
            "registry": str(program.registry_address()),
            "registry_initialized": program.get_registry() is not None,
            "db": db.get_db_stats(),
            "config": config.validate_config(),
        }
        if isinstance(program.events, SqliteEventLog):
            status["event_chain_valid"] = program.events.verify_chain()
        return status

    return app


configure_logging("DEBUG" if config.is_debug() else config.LOG_LEVEL, json_format=config.LOG_JSON)
app = create_app()
