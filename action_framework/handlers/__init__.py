# SPDX-License-Identifier: Apache-2.0
"""Action handlers and their registry."""
from __future__ import annotations

from .base import ActionHandler, FrameworkHandler, LegacyHandler
from .registry import HandlerRegistry, build_registry

__all__ = ["ActionHandler", "FrameworkHandler", "HandlerRegistry", "LegacyHandler", "build_registry"]
