#!/usr/bin/env python3
#
# vpnadmin/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .api import auth as auth_api
from .api import peers as peers_api
from .api import security_events as security_events_api
from .api import stats as stats_api
from .api import users as users_api
from .api.response import error_response, ok_response
from .db.sqlite_runtime import close_all_connections, close_connection, connect
from .db.sqlite_schema import ensure_default_admin, init_schema
from .errors import AuthError, InfrastructureError, VpnAdminError
from .middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from .middleware.rate_limit import rate_limited_response
from .security import events
from .security.events import ClientInfo, Severity
from .tasks.maintenance import (
	RATE_LIMIT_SWEEP_INTERVAL,
	SESSION_SWEEP_INTERVAL,
	cleanup_expired_sessions,
	sweep_rate_limits,
)
from .utils.config import Config, load_config
from .utils.network import get_client_info
from .utils.rate_limit import MovingWindowRateLimitStore, RateLimitStore, limiter
from .utils.request_id import RequestIDMiddleware
from .utils.scheduler import Scheduler
from .wireguard.telemetry import PeerTelemetrySource, build_telemetry_source

_log = logging.getLogger(__name__)

__version__ = "0.1.0"

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",    # Cyan
	"INFO": "\033[32m",     # Green
	"WARNING": "\033[33m",  # Yellow
	"ERROR": "\033[31m",    # Red
	"CRITICAL": "\033[35m", # Magenta
}
_RESET = "\033[0m"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _ColoredFormatter(logging.Formatter):
	"""Formatter that colours the level name on a TTY."""

	def format(self, record):
		orig_levelname = record.levelname
		color = _LOG_COLORS.get(orig_levelname)
		record.levelname = f"{color}{orig_levelname:<8}{_RESET}" if color else f"{orig_levelname:<8}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(log_level: str) -> None:
	"""Configure unified logging for the entire application."""
	level = getattr(logging, log_level, logging.INFO)
	if sys.stdout.isatty():
		formatter: logging.Formatter = _ColoredFormatter(
			fmt=_LOG_FORMAT.replace("%(levelname)-8s", "%(levelname)s"),
			datefmt=_LOG_DATEFMT,
		)
	else:
		formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATEFMT)

	# force=True removes pre-existing handlers (e.g. from uvicorn)
	logging.basicConfig(
		level=level,
		handlers=[logging.StreamHandler(sys.stdout)],
		force=True,
	)
	for handler in logging.root.handlers:
		handler.setFormatter(formatter)

	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		logger = logging.getLogger(name)
		logger.handlers.clear()
		logger.setLevel(level)
		logger.propagate = True

	for name in ("httpcore", "httpx", "aiosqlite"):
		logging.getLogger(name).setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

def _record_infrastructure_error(app: FastAPI, client: ClientInfo, request: Request, exc: InfrastructureError) -> None:
	conn = connect(app.state.db_path)
	try:
		events.record_event(
			conn,
			events.INFRASTRUCTURE_ERROR,
			client=client,
			details={"endpoint": request.url.path, "method": request.method, "error": str(exc), **exc.details},
			severity=Severity.CRITICAL,
		)
	finally:
		close_connection(conn)


async def _handle_infrastructure_error(request: Request, exc: InfrastructureError) -> JSONResponse:
	_log.critical(
		"INFRASTRUCTURE_ERROR method=%s path=%s request_id=%s error=%s",
		request.method,
		request.url.path,
		getattr(request.state, "request_id", None),
		exc,
	)
	try:
		await asyncio.to_thread(_record_infrastructure_error, request.app, get_client_info(request), request, exc)
	except InfrastructureError as record_exc:
		_log.critical("INFRASTRUCTURE_ERROR could not record security event: %s", record_exc)
	return JSONResponse(status_code=exc.status_code, content=error_response(exc.public_detail))


async def _handle_route_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
	return await rate_limited_response(request, scope=f"route:{exc.detail}")


async def _handle_domain_error(request: Request, exc: VpnAdminError) -> JSONResponse:
	if isinstance(exc, AuthError):
		_log.info("AUTH_DENIED status=%d path=%s cause=%s", exc.status_code, request.url.path, exc)
	else:
		_log.info("REQUEST_REJECTED status=%d path=%s error=%s", exc.status_code, request.url.path, exc)
	headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
	return JSONResponse(status_code=exc.status_code, content=error_response(exc.public_detail), headers=headers)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Create the schema, bootstrap the admin, run maintenance jobs."""
	cfg: Config = app.state.cfg

	conn = connect(cfg.db_path)
	try:
		init_schema(conn)
		ensure_default_admin(conn, cfg.admin_password)
	finally:
		close_connection(conn)

	scheduler = Scheduler()
	scheduler.add(
		"session-sweep",
		SESSION_SWEEP_INTERVAL,
		partial(cleanup_expired_sessions, cfg.db_path),
		timeout=30.0,
	)
	scheduler.add(
		"rate-limit-sweep",
		RATE_LIMIT_SWEEP_INTERVAL,
		partial(sweep_rate_limits, app.state.rate_limit_store),
	)
	app.state.scheduler = scheduler
	await scheduler.start()
	_log.info(
		"STARTUP db=%s telemetry=%s rate_limit=%d/%ds",
		cfg.db_path,
		app.state.telemetry_source.name,
		cfg.rate_limit,
		cfg.rate_window_seconds,
	)

	try:
		yield
	finally:
		await scheduler.stop_graceful()
		closed = close_all_connections()
		_log.info("SHUTDOWN closed %d database connections", closed)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app(
	cfg: Optional[Config] = None,
	*,
	telemetry_source: Optional[PeerTelemetrySource] = None,
	rate_limit_store: Optional[RateLimitStore] = None,
) -> FastAPI:
	"""Application factory.

	The telemetry source and the rate-limit store are built from *cfg* unless
	passed in explicitly.
	"""
	cfg = cfg or load_config()
	_setup_logging(cfg.log_level)

	app = FastAPI(
		title="vpnadmin",
		description="Admin API for a WireGuard VPN",
		version=__version__,
		lifespan=_lifespan,
		docs_url="/api/docs",
		redoc_url="/api/redoc",
	)

	app.state.cfg = cfg
	app.state.db_path = cfg.db_path
	if telemetry_source is None:
		telemetry_source = build_telemetry_source(cfg)
	if rate_limit_store is None:
		rate_limit_store = MovingWindowRateLimitStore(
			cfg.rate_limit,
			cfg.rate_window_seconds,
			storage_uri=cfg.rate_limit_storage,
		)
	app.state.telemetry_source = telemetry_source
	app.state.rate_limit_store = rate_limit_store

	# ─── MIDDLEWARE ──────────────────────────────────────────
	# Last added runs first: request id, then headers, then the budget
	app.add_middleware(RateLimitMiddleware)
	app.add_middleware(SecurityHeadersMiddleware)
	app.add_middleware(RequestIDMiddleware)

	# Per-route limits (login)
	app.state.limiter = limiter
	app.add_exception_handler(RateLimitExceeded, _handle_route_rate_limit)

	app.add_exception_handler(InfrastructureError, _handle_infrastructure_error)
	app.add_exception_handler(VpnAdminError, _handle_domain_error)

	# ─── API ROUTES ──────────────────────────────────────────
	app.include_router(auth_api.router, prefix="/api")
	app.include_router(peers_api.router, prefix="/api/peers")
	app.include_router(stats_api.router, prefix="/api/stats")
	app.include_router(users_api.router, prefix="/api/users")
	app.include_router(security_events_api.router, prefix="/api/security-events")

	@app.get("/api/health", tags=["health"])
	def health():
		scheduler = getattr(app.state, "scheduler", None)
		return ok_response(
			version=__version__,
			telemetry_source=app.state.telemetry_source.name,
			jobs=scheduler.get_status() if scheduler else [],
		)

	return app
