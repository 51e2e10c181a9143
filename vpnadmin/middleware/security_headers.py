#!/usr/bin/env python3
#
# vpnadmin/middleware/security_headers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Static security headers on every response."""

from __future__ import annotations

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

SECURITY_HEADERS = {
	"X-Content-Type-Options": "nosniff",
	"X-Frame-Options": "DENY",
	"Referrer-Policy": "strict-origin-when-cross-origin",
	"Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		response = await call_next(request)
		for name, value in SECURITY_HEADERS.items():
			response.headers.setdefault(name, value)
		return response
