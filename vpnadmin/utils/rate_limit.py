#!/usr/bin/env python3
#
# vpnadmin/utils/rate_limit.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Rate limiting.

Two layers:

- ``limiter`` (slowapi) guards individual routes such as login.
- A ``RateLimitStore`` counts all API requests per client IP in a moving
  window. The store is created once per app and lives on ``app.state``.
  ``MovingWindowRateLimitStore`` runs on the ``limits`` storage backends, so
  pointing ``storage_uri`` at ``redis://...`` shares the budget between
  workers.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

_log = logging.getLogger(__name__)

# Rate limit presets
RATE_LIMIT_AUTH = "5/minute"       # Strict limit for login attempts

# Per-route limiter (login)
limiter = Limiter(key_func=get_remote_address)


class RateLimitStore(ABC):
	"""Time-windowed request counter keyed by client."""

	@abstractmethod
	def hit(self, key: str) -> bool:
		"""Count one request for *key*; return False if it exceeds the limit."""

	@abstractmethod
	def remaining(self, key: str) -> int:
		"""Requests still allowed for *key* in the current window."""

	@abstractmethod
	def sweep(self) -> int:
		"""Drop keys with no hits inside the window; return how many were dropped."""


class MovingWindowRateLimitStore(RateLimitStore):
	"""``limits`` moving-window counter over a pluggable storage backend."""

	def __init__(self, limit: int = 200, window_seconds: int = 900, storage_uri: str = "memory://") -> None:
		if limit < 1:
			raise ValueError(f"limit must be >= 1, got {limit}")
		if window_seconds < 1:
			raise ValueError(f"window_seconds must be >= 1, got {window_seconds}")
		self.limit = limit
		self.window_seconds = int(window_seconds)
		self.storage_uri = storage_uri
		self._item = RateLimitItemPerSecond(limit, self.window_seconds)
		self._window = MovingWindowRateLimiter(storage_from_string(storage_uri))
		# Keys seen by this process, for sweeping
		self._clients: set[str] = set()
		self._lock = threading.Lock()

	def hit(self, key: str) -> bool:
		with self._lock:
			self._clients.add(key)
		return self._window.hit(self._item, key)

	def remaining(self, key: str) -> int:
		return self._window.get_window_stats(self._item, key).remaining

	def sweep(self) -> int:
		with self._lock:
			clients = list(self._clients)
		dropped = 0
		for key in clients:
			if self.remaining(key) < self.limit:
				continue
			self._window.clear(self._item, key)
			with self._lock:
				self._clients.discard(key)
			dropped += 1
		if dropped:
			_log.debug("RATE_LIMIT swept %d idle clients", dropped)
		return dropped

	@property
	def tracked_clients(self) -> int:
		with self._lock:
			return len(self._clients)


__all__ = [
	"RATE_LIMIT_AUTH",
	"limiter",
	"RateLimitStore",
	"MovingWindowRateLimitStore",
]
