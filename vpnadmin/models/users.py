#!/usr/bin/env python3
#
# vpnadmin/models/users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User-related Pydantic models."""

from __future__ import annotations

import re
import sqlite3
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

Role = Literal["user", "moderator", "admin"]
UserStatus = Literal["active", "inactive", "suspended"]

_USERNAME_RE = re.compile(r"^[a-z0-9_-]{3,50}$")

COMMON_PASSWORDS = frozenset({
	"password",
	"123456",
	"12345678",
	"admin",
	"root",
	"qwerty",
	"abc123",
	"password123",
	"admin123",
})


def _validate_username(v: str) -> str:
	"""Validate and normalize username."""
	v_lower = v.strip().lower()
	if not _USERNAME_RE.fullmatch(v_lower):
		raise ValueError("Username must be 3-50 characters: letters, digits, _ or -")
	return v_lower


def validate_password_strength(v: str) -> str:
	"""Require three of four character classes and reject well-known passwords."""
	if v.lower() in COMMON_PASSWORDS:
		raise ValueError("Password is too common")
	classes = sum((
		any(c.islower() for c in v),
		any(c.isupper() for c in v),
		any(c.isdigit() for c in v),
		any(not c.isalnum() for c in v),
	))
	if classes < 3:
		raise ValueError(
			"Password must contain at least three of: lowercase, uppercase, digits, symbols"
		)
	return v


class LoginRequest(BaseModel):
	"""Login request payload."""
	username: str = Field(..., min_length=1, max_length=64)
	password: str = Field(..., min_length=1, max_length=256)

	@field_validator("username")
	@classmethod
	def normalize_username(cls, v: str) -> str:
		return v.strip().lower()


class TokenResponse(BaseModel):
	"""Authentication token response."""
	token: str
	expires_at: datetime
	token_type: Literal["Bearer"] = "Bearer"


class UserCreate(BaseModel):
	"""User creation payload."""
	username: str = Field(..., min_length=3, max_length=50)
	email: Optional[EmailStr] = None
	password: str = Field(..., min_length=8, max_length=128)
	role: Role = "user"
	status: UserStatus = "active"

	@field_validator("username")
	@classmethod
	def validate_username(cls, v: str) -> str:
		return _validate_username(v)

	@field_validator("password")
	@classmethod
	def validate_password(cls, v: str) -> str:
		return validate_password_strength(v)


class UserUpdate(BaseModel):
	"""User update payload.

	Password changes go through the change-password endpoint.
	"""
	email: Optional[EmailStr] = None
	role: Optional[Role] = None
	status: Optional[UserStatus] = None


class UserPublic(BaseModel):
	"""Public user representation (without password)."""
	id: int
	username: str
	email: Optional[str] = None
	role: Role
	status: UserStatus
	failed_login_attempts: int = 0
	locked_until: Optional[datetime] = None
	last_login_at: Optional[datetime] = None
	last_login_ip: Optional[str] = None
	created_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row) -> "UserPublic":
		return cls(
			id=row["id"],
			username=row["username"],
			email=row["email"],
			role=row["role"],
			status=row["status"],
			failed_login_attempts=row["failed_login_attempts"],
			locked_until=row["locked_until"],
			last_login_at=row["last_login_at"],
			last_login_ip=row["last_login_ip"],
			created_at=row["created_at"],
		)


class PasswordChangeRequest(BaseModel):
	"""Password change request payload.

	``current_password`` is required when users change their own password;
	admins resetting someone else's may omit it.
	"""
	current_password: Optional[str] = Field(None, min_length=1, max_length=256)
	new_password: str = Field(..., min_length=8, max_length=128)

	@field_validator("new_password")
	@classmethod
	def validate_new_password(cls, v: str) -> str:
		return validate_password_strength(v)

	@model_validator(mode="after")
	def validate_passwords_differ(self) -> "PasswordChangeRequest":
		if self.current_password and self.current_password == self.new_password:
			raise ValueError("New password must be different from current password")
		return self
