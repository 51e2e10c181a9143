#!/usr/bin/env python3
#
# vpnadmin/utils/request_id.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Request ID middleware for tracing."""

from __future__ import annotations

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Client-supplied IDs end up in logs, so keep them short and printable
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _pick_request_id(header_value: str | None) -> str:
	if header_value and _REQUEST_ID_RE.fullmatch(header_value):
		return header_value
	return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Attach a request ID to ``request.state`` and echo it in the response."""

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		request_id = _pick_request_id(request.headers.get("X-Request-ID"))
		request.state.request_id = request_id

		response = await call_next(request)
		response.headers["X-Request-ID"] = request_id
		return response
