"""
ContactGate Services Module.

Services:
    - ContactService: runs a submission through the gate and delivers it
    - TurnstileVerifier: human-verification token checks
    - Delivery channels: webhook, send binding, provider API, signed API
"""

from .contact_service import ContactService
from .reference_id import issue_reference_id
from .verification_service import (
    TurnstileVerifier,
    VerificationReason,
    VerificationResult,
)

__all__ = [
    "ContactService",
    "TurnstileVerifier",
    "VerificationReason",
    "VerificationResult",
    "issue_reference_id",
]
