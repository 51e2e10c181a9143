#!/usr/bin/env python3
#
# vpnadmin/middleware/rate_limit.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Per-client request budget for the whole API."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from pathlib import Path
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..api.response import error_response
from ..db import sqlite as sqlite_db
from ..errors import InfrastructureError
from ..security import events
from ..security.events import ClientInfo, Severity
from ..utils.network import get_client_info

_log = logging.getLogger(__name__)

API_PREFIX = "/api/"
EXEMPT_PATHS = frozenset({"/api/health"})
RATE_LIMIT_DETAIL = "Too many requests. Please try again later."


def _record_rate_limit_event(db_path: Path, client: ClientInfo, path: str, scope: str) -> None:
	conn = sqlite_db.connect(db_path)
	try:
		events.record_event(
			conn,
			events.RATE_LIMIT_EXCEEDED,
			client=client,
			details={"path": path, "scope": scope},
			severity=Severity.WARNING,
		)
	finally:
		sqlite_db.close_connection(conn)


async def rate_limited_response(request: Request, *, scope: str) -> JSONResponse:
	"""Log, record the event off the event loop, and build the 429."""
	client = get_client_info(request)
	path = request.url.path
	_log.warning("RATE_LIMITED ip=%s path=%s scope=%s", client.ip_address, path, scope)
	try:
		await asyncio.to_thread(_record_rate_limit_event, request.app.state.db_path, client, path, scope)
	except InfrastructureError:
		_log.exception("RATE_LIMITED could not record security event ip=%s", client.ip_address)
	return JSONResponse(status_code=429, content=error_response(RATE_LIMIT_DETAIL))


class RateLimitMiddleware(BaseHTTPMiddleware):
	"""Reject API requests beyond the per-IP budget with 429.

	The store comes from ``app.state.rate_limit_store`` at request time, so
	tests and deployments can swap it without rebuilding the middleware.
	"""

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		path = posixpath.normpath(request.url.path)
		if not path.startswith(API_PREFIX) or path in EXEMPT_PATHS:
			return await call_next(request)

		store = request.app.state.rate_limit_store
		client = get_client_info(request)
		if store.hit(client.ip_address or "unknown"):
			return await call_next(request)
		return await rate_limited_response(request, scope="api")
