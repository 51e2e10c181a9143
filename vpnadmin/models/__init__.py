#!/usr/bin/env python3
#
# vpnadmin/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Pydantic models for vpnadmin."""

from .users import (
	LoginRequest,
	PasswordChangeRequest,
	TokenResponse,
	UserCreate,
	UserPublic,
	UserUpdate,
)
from .peers import (
	PeerCreate,
	PeerPublic,
	PeerUpdate,
)
from .security_events import SecurityEventPublic

__all__ = [
	# Users
	"LoginRequest",
	"PasswordChangeRequest",
	"TokenResponse",
	"UserCreate",
	"UserPublic",
	"UserUpdate",
	# Peers
	"PeerCreate",
	"PeerPublic",
	"PeerUpdate",
	# Security events
	"SecurityEventPublic",
]
