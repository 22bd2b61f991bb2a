# SPDX-License-Identifier: Apache-2.0
"""Exception taxonomy shared by handlers, resilience primitives and adapters."""
from __future__ import annotations

from typing import Optional

NON_RETRYABLE_STATUS = frozenset({400, 401, 403, 404})


class ActionFrameworkError(Exception):
    """Base class for every error raised inside the framework."""


class ConfigurationError(ActionFrameworkError):
    """Reference data or registry lookup failed; retrying cannot help."""


class TransientError(ActionFrameworkError):
    """Network or timing failure that is worth another attempt."""


class ActionTimeoutError(TransientError):
    def __init__(self, label: str, timeout: float, elapsed: float):
        self.label = label
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(f"{label} timed out after {timeout:g}s")


class VendorApiError(TransientError):
    def __init__(self, vendor: str, status: Optional[int], message: str):
        self.vendor = vendor
        self.status = status
        super().__init__(f"{vendor} API error ({status if status is not None else 'transport'}): {message}")


class PermissionDeniedError(ActionFrameworkError):
    """Client-side rejection (4xx) from a vendor; surfaced without retry."""

    def __init__(self, vendor: str, status: int, message: str):
        self.vendor = vendor
        self.status = status
        super().__init__(f"{vendor} rejected request ({status}): {message}")


class CircuitOpenError(ActionFrameworkError):
    def __init__(self, target: str, retry_after: float):
        self.target = target
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker for {target} is OPEN. Service unavailable. Retry after {retry_after:.0f}s")


class RetryExhaustedError(ActionFrameworkError):
    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


class EscalationDeliveryError(ActionFrameworkError):
    """The escalation transport could not hand the alert to staff."""


def vendor_error(vendor: str, status: Optional[int], message: str) -> ActionFrameworkError:
    if status in NON_RETRYABLE_STATUS:
        return PermissionDeniedError(vendor, status, message)
    return VendorApiError(vendor, status, message)


def status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None
