#!/usr/bin/env python3
#
# vpnadmin/api/auth.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Authentication API routes and dependencies."""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..db import sqlite as sqlite_db
from ..errors import AuthError, InvalidCredentialsError, PermissionDeniedError
from ..models.users import LoginRequest, TokenResponse, UserPublic
from ..security import events
from ..security.events import ClientInfo, Severity
from ..security.login import LockoutPolicy, authenticate
from ..utils.config import Config
from ..utils.deps import get_client, get_config, get_conn
from ..utils.rate_limit import RATE_LIMIT_AUTH, limiter
from .response import ok_response

_log = logging.getLogger(__name__)
_security = HTTPBearer(auto_error=False)

router = APIRouter(tags=["auth"])


# ---------------------------------------------------------------------------
# Authentication Dependencies
# ---------------------------------------------------------------------------

def _endpoint_details(request: Request) -> dict[str, str]:
	return {"endpoint": request.url.path, "method": request.method}


def get_current_user(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_security),
	conn: sqlite3.Connection = Depends(get_conn),
	client: ClientInfo = Depends(get_client),
) -> sqlite3.Row:
	"""FastAPI dependency that enforces a valid session.

	Missing, unknown, expired tokens and inactive owners all yield the same 401.
	"""
	user = None
	if credentials and credentials.credentials:
		user = sqlite_db.get_user_by_session(conn, credentials.credentials)
	if user is None:
		reason = "invalid_session" if credentials and credentials.credentials else "missing_token"
		events.record_event(
			conn,
			events.UNAUTHORIZED_ACCESS,
			client=client,
			details={**_endpoint_details(request), "reason": reason},
			severity=Severity.WARNING,
		)
		raise AuthError(f"Unauthorized access to {request.method} {request.url.path}: {reason}")
	return user


def require_admin(
	request: Request,
	user: sqlite3.Row = Depends(get_current_user),
	conn: sqlite3.Connection = Depends(get_conn),
	client: ClientInfo = Depends(get_client),
) -> sqlite3.Row:
	"""FastAPI dependency that enforces the admin role."""
	if user["role"] != "admin":
		deny(conn, request, user, client)
	return user


def deny(conn: sqlite3.Connection, request: Request, user: sqlite3.Row, client: ClientInfo) -> None:
	"""Record an ``insufficient_permissions`` event and raise 403."""
	events.record_event(
		conn,
		events.INSUFFICIENT_PERMISSIONS,
		client=client,
		user_id=user["id"],
		details={**_endpoint_details(request), "role": user["role"]},
		severity=Severity.WARNING,
	)
	raise PermissionDeniedError(
		f"User {user['username']} ({user['role']}) may not {request.method} {request.url.path}"
	)


# ---------------------------------------------------------------------------
# Auth Endpoints
# ---------------------------------------------------------------------------

@router.post("/login")
@limiter.limit(RATE_LIMIT_AUTH)
def login(
	request: Request,
	payload: LoginRequest,
	conn: sqlite3.Connection = Depends(get_conn),
	cfg: Config = Depends(get_config),
	client: ClientInfo = Depends(get_client),
):
	"""Authenticate a user and return a bearer token."""
	result = authenticate(
		conn,
		payload.username,
		payload.password,
		client=client,
		policy=LockoutPolicy(session_hours=cfg.session_hours),
	)
	if not result.ok:
		_log.info(
			"LOGIN_FAILED ip=%s username=%s state=%s reason=%s",
			client.ip_address, payload.username, result.state.value, result.reason,
		)
		raise InvalidCredentialsError(f"Login {result.state.value} for {payload.username}: {result.reason}")

	session = result.session
	_log.info("LOGIN_SUCCESS ip=%s username=%s", client.ip_address, payload.username)
	data = TokenResponse(token=session.token, expires_at=session.expires_at).model_dump(mode="json")
	return ok_response(data=data, **data)


@router.post("/logout")
def logout(
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_security),
	user: sqlite3.Row = Depends(get_current_user),
	conn: sqlite3.Connection = Depends(get_conn),
	client: ClientInfo = Depends(get_client),
):
	"""Invalidate the current session."""
	sqlite_db.delete_session(conn, credentials.credentials)
	events.record_event(
		conn,
		events.LOGOUT,
		client=client,
		user_id=user["id"],
		details={"username": user["username"]},
	)
	return ok_response(message="Logged out")


@router.get("/me")
def get_current_user_info(user: sqlite3.Row = Depends(get_current_user)):
	"""Get the current authenticated user's info."""
	data = UserPublic.from_row(user).model_dump(mode="json")
	return ok_response(data=data, **data)
