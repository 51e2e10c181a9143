#!/usr/bin/env python3
#
# vpnadmin/models/peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard peer-related Pydantic models."""

from __future__ import annotations

import ipaddress
import re
import sqlite3
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.time import from_epoch
from ..wireguard.status import PeerStatus, derive_status, last_seen
from ..wireguard.traffic import format_bytes

_WG_KEY_RE = re.compile(r"[A-Za-z0-9+/]{43}=")


def _validate_allowed_ips(v: str) -> str:
	"""Normalise a comma separated CIDR list."""
	items = [x.strip() for x in v.split(",") if x.strip()]
	if not items:
		raise ValueError("allowed_ips must contain at least one network")
	for item in items:
		try:
			ipaddress.ip_network(item, strict=False)
		except ValueError as exc:
			raise ValueError(f"Invalid network in allowed_ips: {item!r}") from exc
	return ", ".join(items)


def _validate_address(v: str) -> str:
	v = v.strip()
	try:
		ipaddress.ip_interface(v)
	except ValueError as exc:
		raise ValueError(f"Invalid peer address: {v!r}") from exc
	return v


def _validate_endpoint(v: Optional[str]) -> Optional[str]:
	if v is None:
		return v
	v = v.strip()
	if not v or any(c.isspace() for c in v) or ":" not in v:
		raise ValueError("Endpoint must look like host:port")
	return v


class PeerCreate(BaseModel):
	"""Peer provisioning payload."""
	public_key: str
	name: str = Field(..., min_length=1, max_length=128)
	address: str = Field(..., min_length=1, max_length=64)
	allowed_ips: str = Field(..., min_length=1, max_length=256)
	endpoint: Optional[str] = Field(None, max_length=256)
	is_enabled: bool = True

	@field_validator("public_key")
	@classmethod
	def validate_key(cls, v: str) -> str:
		if not _WG_KEY_RE.fullmatch(v):
			raise ValueError("Invalid WireGuard key format (must be 44-char base64)")
		return v

	@field_validator("name")
	@classmethod
	def strip_name(cls, v: str) -> str:
		v = v.strip()
		if not v:
			raise ValueError("Name must not be blank")
		return v

	@field_validator("address")
	@classmethod
	def validate_address(cls, v: str) -> str:
		return _validate_address(v)

	@field_validator("allowed_ips")
	@classmethod
	def validate_allowed_ips(cls, v: str) -> str:
		return _validate_allowed_ips(v)

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
		return _validate_endpoint(v)


class PeerUpdate(BaseModel):
	"""Peer update payload.

	Omitted fields stay unchanged. ``endpoint`` may be set to null to clear
	it; the other fields reject an explicit null.
	"""
	name: Optional[str] = Field(None, min_length=1, max_length=128)
	address: Optional[str] = Field(None, max_length=64)
	allowed_ips: Optional[str] = Field(None, max_length=256)
	endpoint: Optional[str] = Field(None, max_length=256)
	is_enabled: Optional[bool] = None

	@field_validator("name")
	@classmethod
	def strip_name(cls, v: Optional[str]) -> str:
		if v is None:
			raise ValueError("Name cannot be null")
		v = v.strip()
		if not v:
			raise ValueError("Name must not be blank")
		return v

	@field_validator("address")
	@classmethod
	def validate_address(cls, v: Optional[str]) -> str:
		if v is None:
			raise ValueError("Address cannot be null")
		return _validate_address(v)

	@field_validator("allowed_ips")
	@classmethod
	def validate_allowed_ips(cls, v: Optional[str]) -> str:
		if v is None:
			raise ValueError("Allowed IPs cannot be null")
		return _validate_allowed_ips(v)

	@field_validator("is_enabled")
	@classmethod
	def validate_enabled(cls, v: Optional[bool]) -> bool:
		if v is None:
			raise ValueError("is_enabled cannot be null")
		return v

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
		return _validate_endpoint(v)


class PeerPublic(BaseModel):
	"""Peer as shown in the dashboard, with derived fields."""
	id: int
	public_key: str
	name: str
	address: str
	allowed_ips: str
	endpoint: Optional[str] = None
	is_enabled: bool
	bytes_received: int = Field(ge=0)
	bytes_sent: int = Field(ge=0)
	last_handshake_at: Optional[datetime] = None
	status: PeerStatus
	last_seen: str
	formatted: dict[str, str]
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row, now: Optional[datetime] = None) -> "PeerPublic":
		"""Build from a ``peers`` row; status is derived at call time."""
		handshake = from_epoch(row["last_handshake_at"])
		return cls(
			id=row["id"],
			public_key=row["public_key"],
			name=row["name"],
			address=row["address"],
			allowed_ips=row["allowed_ips"],
			endpoint=row["endpoint"],
			is_enabled=bool(row["is_enabled"]),
			bytes_received=row["bytes_received"],
			bytes_sent=row["bytes_sent"],
			last_handshake_at=handshake,
			status=derive_status(handshake, now),
			last_seen=last_seen(handshake, now),
			formatted={
				"bytes_received": format_bytes(row["bytes_received"]),
				"bytes_sent": format_bytes(row["bytes_sent"]),
				"total": format_bytes(row["bytes_received"] + row["bytes_sent"]),
			},
			created_at=row["created_at"],
			updated_at=row["updated_at"],
		)
