#!/usr/bin/env python3
#
# vpnadmin/api/users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User management API routes."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends, Request, Response

from ..db import sqlite as sqlite_db
from ..errors import ConstraintError, NotFoundError, ValidationError
from ..models.users import PasswordChangeRequest, UserCreate, UserPublic, UserUpdate
from ..security import events
from ..security.events import ClientInfo, Severity
from ..utils.crypto import verify_password
from ..utils.deps import get_client, get_conn
from .auth import deny, get_current_user, require_admin
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


def _public(row: sqlite3.Row) -> dict:
	return UserPublic.from_row(row).model_dump(mode="json")


def _get_or_404(conn: sqlite3.Connection, user_id: int) -> sqlite3.Row:
	user = sqlite_db.get_user_by_id(conn, user_id)
	if not user:
		raise NotFoundError(f"User {user_id} not found")
	return user


@router.get("")
def list_users(
	conn: sqlite3.Connection = Depends(get_conn),
	_: sqlite3.Row = Depends(require_admin),
):
	"""List all users (admin only)."""
	return ok_response(data=[_public(row) for row in sqlite_db.get_all_users(conn)])


@router.post("", status_code=201)
def create_user(
	payload: UserCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Create a new user (admin only)."""
	user_id = sqlite_db.create_user(
		conn,
		payload.username,
		payload.password,
		email=payload.email,
		role=payload.role,
		status=payload.status,
	)
	events.record_event(
		conn,
		events.USER_CREATED,
		client=client,
		user_id=current_user["id"],
		details={"target_user_id": user_id, "username": payload.username, "role": payload.role},
	)
	_log.info("USER_CREATED username=%s by_admin_id=%d", payload.username, current_user["id"])
	return ok_response(data=_public(_get_or_404(conn, user_id)))


@router.get("/{user_id}")
def get_user(
	user_id: int,
	request: Request,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	client: ClientInfo = Depends(get_client),
):
	"""Get a user by ID. Users can view their own profile, admins anyone."""
	if current_user["id"] != user_id and current_user["role"] != "admin":
		deny(conn, request, current_user, client)
	return ok_response(data=_public(_get_or_404(conn, user_id)))


@router.patch("/{user_id}")
def update_user(
	user_id: int,
	payload: UserUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Update email, role or status (admin only).

	Demoting or deactivating the last active admin is rejected.
	"""
	changes = payload.model_dump(exclude_none=True)
	user = sqlite_db.update_user(conn, user_id, **changes)
	if changes.get("status") not in (None, "active"):
		sqlite_db.delete_user_sessions(conn, user_id)
	events.record_event(
		conn,
		events.USER_UPDATED,
		client=client,
		user_id=current_user["id"],
		details={"target_user_id": user_id, "changes": changes},
	)
	_log.info("USER_UPDATED user_id=%d by_user=%d fields=%s", user_id, current_user["id"], sorted(changes))
	return ok_response(data=_public(user))


@router.post("/{user_id}/unlock")
def unlock_user(
	user_id: int,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Clear failed-login counter and lock (admin only)."""
	sqlite_db.unlock_user(conn, user_id)
	events.record_event(
		conn,
		events.ACCOUNT_UNLOCKED,
		client=client,
		user_id=current_user["id"],
		details={"target_user_id": user_id},
	)
	_log.info("USER_UNLOCKED user_id=%d by_admin=%d", user_id, current_user["id"])
	return ok_response(data=_public(_get_or_404(conn, user_id)))


@router.delete("/{user_id}", status_code=204)
def delete_user(
	user_id: int,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(require_admin),
	client: ClientInfo = Depends(get_client),
):
	"""Delete a user (admin only)."""
	if current_user["id"] == user_id:
		raise ConstraintError("Cannot delete yourself")

	try:
		user = sqlite_db.delete_user(conn, user_id)
	except ConstraintError as exc:
		events.record_event(
			conn,
			events.USER_DELETION_BLOCKED,
			client=client,
			user_id=current_user["id"],
			details={"target_user_id": user_id, "reason": str(exc)},
			severity=Severity.WARNING,
		)
		raise

	events.record_event(
		conn,
		events.USER_DELETED,
		client=client,
		user_id=current_user["id"],
		details={"target_user_id": user_id, "username": user["username"]},
		severity=Severity.WARNING,
	)
	_log.info("USER_DELETED user_id=%d by_admin=%d", user_id, current_user["id"])
	return Response(status_code=204)


@router.post("/{user_id}/change-password")
def change_password(
	user_id: int,
	request: Request,
	payload: PasswordChangeRequest,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	client: ClientInfo = Depends(get_client),
):
	"""Change a user's password and revoke all of their sessions.

	Users must give their current password; admins may reset anyone else's
	without it.
	"""
	is_self = current_user["id"] == user_id
	if not is_self and current_user["role"] != "admin":
		deny(conn, request, current_user, client)

	user = _get_or_404(conn, user_id)
	if is_self:
		if not payload.current_password or not verify_password(payload.current_password, user["password_hash"]):
			raise ValidationError("Current password incorrect")

	sqlite_db.set_password(conn, user_id, payload.new_password)
	revoked = sqlite_db.delete_user_sessions(conn, user_id)
	events.record_event(
		conn,
		events.PASSWORD_CHANGED,
		client=client,
		user_id=current_user["id"],
		details={"target_user_id": user_id, "sessions_revoked": revoked},
	)
	_log.info("PASSWORD_CHANGED user_id=%d by_user=%d", user_id, current_user["id"])
	return ok_response(message="Password changed successfully")
