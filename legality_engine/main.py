# legality_engine/main.py
"""
Crew duty legality engine - FastAPI main file.

Loads rule configurations from the rules folder, exposes:
- GET  /               -> "Legality Engine Ready!" + regimes count
- GET  /rules          -> list regime summaries
- GET  /rules/{id}     -> full regime document
- POST /rules/reload   -> reload regimes from disk
- POST /check          -> evaluate one proposed duty
- POST /check/batch    -> evaluate many independent proposed duties
"""

import logging
from typing import Dict, List, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import ConfigurationError, InputError, UnknownRegimeError
from .legality import router as legality_router
from .rule_config import RuleConfiguration, load_rules_from_folder
from .settings import Settings, get_settings

log = logging.getLogger("uvicorn.error")


# ---------- RESPONSE MODELS ----------
class RuleSummary(BaseModel):
    id: str
    title: Optional[str] = None
    version: Optional[str] = None
    enabled: Optional[bool] = None
    source_file: Optional[str] = None
    windows: List[str] = []


def _load_into_state(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    try:
        loaded, invalid = load_rules_from_folder(settings.rules_dir)
    except OSError as e:
        log.exception("load_rules_from_folder failed: %s", e)
        loaded, invalid = {}, [{"file": "loader_exception", "error": str(e)}]

    # replaced wholesale; requests in flight keep the snapshot they resolved
    app.state.configurations = loaded
    app.state.invalid_rules = invalid
    app.state.default_regime = settings.default_regime

    if loaded and settings.default_regime not in loaded:
        log.warning("Default regime %s is not among the loaded configurations", settings.default_regime)
    log.info("Rule loader: %d valid, %d invalid", len(loaded), len(invalid))


def _configure_logging(settings: Settings) -> None:
    for name in ("legality", "rule_loader"):
        logging.getLogger(name).setLevel(settings.numeric_log_level)


# ---------- LIFESPAN STARTUP ----------
@asynccontextmanager
async def _lifespan(app: FastAPI):
    _configure_logging(app.state.settings)
    _load_into_state(app)
    yield


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InputError)
    async def _input_error(request: Request, exc: InputError):
        log.info("Input error [%s]: %s", exc.code, exc.message)
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.exception_handler(UnknownRegimeError)
    async def _unknown_regime(request: Request, exc: UnknownRegimeError):
        log.info("Unknown regime: %s", exc.regime)
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError):
        log.error("Configuration error [%s]: %s", exc.code, exc.message)
        return JSONResponse(status_code=500, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="Crew Duty Legality Engine", lifespan=_lifespan)
    app.state.settings = settings or get_settings()
    app.state.configurations = {}
    app.state.invalid_rules = []
    app.state.default_regime = app.state.settings.default_regime

    _register_error_handlers(app)

    # Include legality checker
    app.include_router(legality_router)

    # ---------- ROOT ----------
    @app.get("/")
    def root():
        configurations = getattr(app.state, "configurations", {})
        return {
            "message": "Legality Engine Ready!",
            "regimes_loaded": len(configurations),
            "default_regime": app.state.default_regime,
        }

    # ---------- LIST RULES ----------
    @app.get("/rules", response_model=List[RuleSummary])
    def get_rules():
        configurations: Dict[str, RuleConfiguration] = getattr(app.state, "configurations", {})
        return [
            RuleSummary(
                id=c.id,
                title=c.title,
                version=c.version,
                enabled=c.enabled,
                source_file=c.source_file,
                windows=[w.name for w in c.windows],
            )
            for c in sorted(configurations.values(), key=lambda c: c.id)
        ]

    # ---------- GET RULE DETAIL ----------
    @app.get("/rules/{rule_id}", response_model=RuleConfiguration)
    def get_rule_detail(rule_id: str):
        configurations: Dict[str, RuleConfiguration] = getattr(app.state, "configurations", {})
        config = configurations.get(rule_id)
        if config is None:
            raise HTTPException(status_code=404, detail=f"Rule configuration '{rule_id}' not found")
        return config

    # ---------- RELOAD RULES ----------
    @app.post("/rules/reload")
    def reload_rules():
        _load_into_state(app)
        return {
            "loaded": len(app.state.configurations),
            "invalid": app.state.invalid_rules,
        }

    return app


app = create_app()
