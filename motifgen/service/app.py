"""FastAPI application exposing motifgen engine operations."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..engine import MotifEngine
from ..errors import (
    BelowAcceptanceBar,
    IntegrityViolation,
    LedgerWriteConflict,
    MotifError,
    NameCollision,
    NotFound,
    UnparsableSource,
)
from ..models import ExtractedSignature, SourceUnit

_T = TypeVar("_T")

_STATUS_CODES = {
    NotFound: 404,
    NameCollision: 409,
    UnparsableSource: 422,
    BelowAcceptanceBar: 422,
    LedgerWriteConflict: 503,
    IntegrityViolation: 500,
}


class SourceRequest(BaseModel):
    language: str
    text: str
    entity: Optional[str] = None
    origin: Optional[str] = None

    def to_unit(self) -> SourceUnit:
        return SourceUnit(language=self.language, text=self.text, entity=self.entity, origin=self.origin)


class DiscoverRequest(BaseModel):
    signature: Dict[str, Any]


class DefineRequest(BaseModel):
    signature: Dict[str, Any]
    pattern: Optional[str] = None
    canonical_name: Optional[str] = None
    acceptance_bar: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ValidateRequest(BaseModel):
    definition_hash: str
    sources: Dict[str, SourceRequest]


class HealthResponse(BaseModel):
    status: str
    definitions: int
    ledger_events: int


def _default_engine() -> MotifEngine:
    return MotifEngine.from_path(Path.cwd())


def create_app(engine_factory: Callable[[], MotifEngine] = _default_engine) -> FastAPI:
    """Create the FastAPI application exposing motifgen operations."""

    app = FastAPI(title="motifgen Service", version="0.1.0")
    app.state.engine = engine_factory()

    async def get_engine() -> MotifEngine:
        return app.state.engine

    async def _run(call: Callable[[], _T]) -> _T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, call)

    @app.get("/health", response_model=HealthResponse)
    async def health(engine: MotifEngine = Depends(get_engine)) -> HealthResponse:
        return HealthResponse(status="ok", definitions=len(engine.store), ledger_events=len(engine.ledger))

    @app.post("/extract")
    async def extract(payload: SourceRequest, engine: MotifEngine = Depends(get_engine)) -> Dict[str, Any]:
        signature = await _run(lambda: engine.extract(payload.to_unit()))
        engine.persist()
        return signature.to_dict()

    @app.post("/discover")
    async def discover(payload: DiscoverRequest, engine: MotifEngine = Depends(get_engine)) -> List[Dict[str, Any]]:
        signature = _signature(payload.signature)
        discovered = await _run(lambda: engine.discover(signature))
        engine.persist()
        return [item.to_dict() for item in discovered]

    @app.post("/define")
    async def define(payload: DefineRequest, engine: MotifEngine = Depends(get_engine)) -> Dict[str, Any]:
        signature = _signature(payload.signature)

        def _define() -> Dict[str, Any]:
            discovered = engine.discover(signature)
            candidates = [item for item in discovered if payload.pattern is None or payload.pattern in item.patterns]
            if not candidates:
                wanted = f"pattern '{payload.pattern}'" if payload.pattern else "any pattern"
                raise NotFound("discovery", f"{wanted} in {signature.entity}")
            definition = engine.define(
                candidates[0], payload.canonical_name, payload.acceptance_bar, signature=signature
            )
            return definition.to_dict()

        result = await _run(_define)
        engine.persist()
        return result

    @app.post("/validate")
    async def validate(payload: ValidateRequest, engine: MotifEngine = Depends(get_engine)) -> Dict[str, Any]:
        units = {language: source.to_unit() for language, source in payload.sources.items()}
        record = await _run(lambda: engine.validate_sources(payload.definition_hash, units))
        engine.persist()
        return {"record_hash": record.record_hash, **record.to_dict()}

    @app.get("/definitions/{content_hash}")
    async def get_definition(content_hash: str, engine: MotifEngine = Depends(get_engine)) -> Dict[str, Any]:
        return engine.get_definition(content_hash).to_dict()

    @app.get("/ledger/verify")
    async def verify_ledger(engine: MotifEngine = Depends(get_engine)) -> Dict[str, int]:
        return await _run(engine.verify)

    @app.exception_handler(MotifError)
    async def motif_error_handler(_: Request, exc: MotifError) -> JSONResponse:
        status = next((code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 500)
        return JSONResponse(status_code=status, content={"detail": str(exc), "error": exc.details()})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _signature(payload: Dict[str, Any]) -> ExtractedSignature:
    try:
        return ExtractedSignature.from_dict(payload)
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed signature payload: {exc}") from exc


def run_service(
    host: str = "0.0.0.0",
    port: int = 8000,
    engine_factory: Callable[[], MotifEngine] = _default_engine,
) -> None:  # pragma: no cover - integration path
    app = create_app(engine_factory)
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
