#!/usr/bin/env python3
#
# vpnadmin/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Domain error taxonomy and its HTTP mapping.

Every error carries a ``public_detail`` that is safe to return to clients.
``AuthError`` always answers with a generic message; the real cause stays in
``str(exc)`` for server-side logs and the security event log.
"""

from __future__ import annotations

from typing import Any, Optional


class VpnAdminError(Exception):
	"""Base class for errors raised by the application core."""

	status_code = 500

	def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
		super().__init__(message)
		self.details = details or {}

	@property
	def public_detail(self) -> str:
		return str(self)


class ValidationError(VpnAdminError):
	"""Malformed input, rejected before any mutation."""

	status_code = 422


class AuthError(VpnAdminError):
	"""Bad credentials, locked account, or missing/expired session."""

	status_code = 401
	generic_detail = "Not authenticated"

	def __init__(self, message: str = "Not authenticated", *, details: Optional[dict[str, Any]] = None) -> None:
		super().__init__(message, details=details)

	@property
	def public_detail(self) -> str:
		return self.generic_detail


class InvalidCredentialsError(AuthError):
	"""Login failed; the caller never learns whether the account was locked."""

	generic_detail = "Invalid username or password"


class PermissionDeniedError(AuthError):
	"""Authenticated, but the role does not allow the operation."""

	status_code = 403
	generic_detail = "Insufficient permissions"


class NotFoundError(VpnAdminError):
	"""Unknown user or peer id."""

	status_code = 404


class ConstraintError(VpnAdminError):
	"""Operator mistake such as deleting the last admin or a duplicate name."""

	status_code = 409


class InfrastructureError(VpnAdminError):
	"""Store unavailable or telemetry source unreachable."""

	status_code = 500

	@property
	def public_detail(self) -> str:
		return "Internal server error"


__all__ = [
	"VpnAdminError",
	"ValidationError",
	"AuthError",
	"InvalidCredentialsError",
	"PermissionDeniedError",
	"NotFoundError",
	"ConstraintError",
	"InfrastructureError",
]
