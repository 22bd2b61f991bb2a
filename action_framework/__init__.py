# SPDX-License-Identifier: Apache-2.0
"""Action execution framework for facility operations."""
from __future__ import annotations

from .context import ActionContext, ActionRequest, SopConfig, ThreadRef
from .dispatcher import ActionDispatcher, DispatchEvent, build_dispatcher
from .outcomes import ActionResult, OutcomeKind, ThreadStatus, transition_for

__all__ = [
    "ActionContext",
    "ActionDispatcher",
    "ActionRequest",
    "ActionResult",
    "DispatchEvent",
    "OutcomeKind",
    "SopConfig",
    "ThreadRef",
    "ThreadStatus",
    "build_dispatcher",
    "transition_for",
]
