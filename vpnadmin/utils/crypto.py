#!/usr/bin/env python3
#
# vpnadmin/utils/crypto.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Password hashing and session-token helpers."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from datetime import datetime, timedelta

from .time import utcnow

PBKDF2_ITERATIONS = 600_000  # OWASP recommended minimum for PBKDF2-SHA256

# Verified against when the username doesn't exist, so unknown accounts cost
# the same PBKDF2 work as real ones.
DUMMY_PASSWORD_HASH = (
	f"pbkdf2:sha256:{PBKDF2_ITERATIONS}"
	"$00000000000000000000000000000000"
	"$0000000000000000000000000000000000000000000000000000000000000000"
)


def hash_password(password: str, iterations: int | None = None) -> str:
	"""Hash a password using PBKDF2-SHA256 with random salt.

	Returns:
		Format: 'pbkdf2:sha256:iterations$salt$hash'
	"""
	salt = os.urandom(16)
	rounds = iterations or PBKDF2_ITERATIONS
	dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
	return f"pbkdf2:sha256:{rounds}${salt.hex()}${dk.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
	"""Verify a password against a stored hash (constant-time comparison)."""
	try:
		method, salt_hex, hash_hex = password_hash.split("$")
		scheme, algorithm, iterations = method.split(":")
		if scheme != "pbkdf2":
			return False
		stored = bytes.fromhex(hash_hex)
		dk = hashlib.pbkdf2_hmac(
			algorithm,
			password.encode("utf-8"),
			bytes.fromhex(salt_hex),
			int(iterations),
		)
		return hmac.compare_digest(dk, stored)
	except (ValueError, TypeError):
		return False


def new_token() -> str:
	"""Generate a new secure random session token (32 bytes, URL-safe base64)."""
	return secrets.token_urlsafe(32)


def new_password(length: int = 20) -> str:
	"""Generate a random password for bootstrap accounts."""
	return secrets.token_urlsafe(length)[:length]


def hash_token(token: str) -> str:
	"""Hash a session token for storage using SHA-256.

	Only the digest is persisted, so a leaked database doesn't expose
	usable bearer credentials.
	"""
	return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_expiry(hours: int = 24, now: datetime | None = None) -> datetime:
	"""Return the expiry timestamp for a session issued at *now*."""
	return (now or utcnow()) + timedelta(hours=hours)
