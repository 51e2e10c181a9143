#!/usr/bin/env python3
#
# vpnadmin/security/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Authentication, sessions and the security event log."""

from .events import ClientInfo, Severity, record_event
from .login import (
	IssuedSession,
	LockoutPolicy,
	LoginResult,
	LoginState,
	authenticate,
	issue_session,
)

__all__ = [
	"ClientInfo",
	"Severity",
	"record_event",
	"IssuedSession",
	"LockoutPolicy",
	"LoginResult",
	"LoginState",
	"authenticate",
	"issue_session",
]
