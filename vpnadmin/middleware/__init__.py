#!/usr/bin/env python3
#
# vpnadmin/middleware/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Middleware modules for vpnadmin."""

from .rate_limit import RateLimitMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = ["RateLimitMiddleware", "SecurityHeadersMiddleware"]
