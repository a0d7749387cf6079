"""
Two-phase contact submission flow.

Phase one collects the form and persists it; phase two runs the human
verification challenge and sends. All state lives in one
``SubmissionStatus`` value that only moves through the transitions below.

    IDLE -> FILLING -> (BLOCKED | SUBMITTING -> PENDING_VERIFICATION)
    NO_PENDING | VERIFYING -> VERIFIED -> SENDING -> (SUCCESS | ERROR)

The network call runs as an ``asyncio.Task``; cancelling it is the abort
mechanism. Each send gets a generation number and only the newest
generation may write state.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import httpx

from app.client.api import ContactApiResponse, ContactSubmissionError, submit_contact_request
from app.client.config import ContactClientSettings
from app.client.storage import PendingContact, PendingContactStore, StorageError
from app.core.validation import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

MIN_FILL_SECONDS = 1.0

MSG_HONEYPOT_SUCCESS = "Message sent successfully! I'll get back to you soon."
MSG_TOO_FAST = "Please take your time filling out the form"
MSG_MISSING_FIELDS = "Please fill in all fields"
MSG_INVALID_EMAIL = "Please enter a valid email address"
MSG_REDIRECTING = "Redirecting to verification…"
MSG_NO_PENDING = "No pending message found. Please return to the contact form and try again."
MSG_VERIFYING = "Verifying you are human…"
MSG_VERIFIED = "Verification complete. Ready to send."
MSG_VERIFICATION_FAILED = "Verification failed. Please try again."
MSG_VERIFICATION_EXPIRED = "Verification expired. Please try again."
MSG_SENDING = "Sending your message securely…"
MSG_CANCELED = "The request was canceled. Please try again."


class SubmissionState(str, Enum):
    IDLE = "idle"
    FILLING = "filling"
    BLOCKED = "blocked"
    SUBMITTING = "submitting"
    PENDING_VERIFICATION = "pending_verification"
    NO_PENDING = "no_pending"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    SENDING = "sending"
    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    STORAGE = "storage"
    VERIFICATION_FAILED = "verification_failed"
    VERIFICATION_EXPIRED = "verification_expired"
    SUBMISSION_FAILED = "submission_failed"
    REQUEST_CANCELED = "request_canceled"
    NETWORK = "network"


@dataclass(frozen=True)
class SubmissionStatus:
    state: SubmissionState
    message: Optional[str] = None
    error: Optional[ErrorKind] = None
    reference_id: Optional[str] = None
    retryable: bool = False


@dataclass(frozen=True)
class ContactForm:
    name: str = ""
    email: str = ""
    message: str = ""
    # Hidden field; humans never fill it
    website: str = ""


SubmitFn = Callable[[Dict[str, Any]], Awaitable[ContactApiResponse]]


class ContactSubmissionMachine:
    def __init__(
        self,
        settings: Optional[ContactClientSettings] = None,
        store: Optional[PendingContactStore] = None,
        submit: Optional[SubmitFn] = None,
        navigate: Optional[Callable[[], None]] = None,
        navigate_back: Optional[Callable[[], None]] = None,
        reset_challenge: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or ContactClientSettings()
        self.store = store or PendingContactStore()
        self._submit = submit or self._default_submit
        self._navigate = navigate
        self._navigate_back = navigate_back
        self._reset_challenge = reset_challenge
        self._clock = clock

        self.status = SubmissionStatus(SubmissionState.IDLE)
        self.form = ContactForm()
        self.pending: Optional[PendingContact] = None
        self.token: Optional[str] = None

        self._started_at: Optional[float] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._canceled_generations: Set[int] = set()

    async def _default_submit(self, payload: Dict[str, Any]) -> ContactApiResponse:
        return await submit_contact_request(payload, self.settings)

    @property
    def state(self) -> SubmissionState:
        return self.status.state

    @property
    def is_processing(self) -> bool:
        return self.state in (SubmissionState.VERIFYING, SubmissionState.SENDING)

    def _set(self, state: SubmissionState, message: Optional[str] = None, **kwargs) -> SubmissionStatus:
        self.status = SubmissionStatus(state, message, **kwargs)
        logger.debug("Contact state -> %s", state.value)
        return self.status

    def _error(self, kind: ErrorKind, message: str, retryable: bool = True) -> SubmissionStatus:
        return self._set(SubmissionState.ERROR, message, error=kind, retryable=retryable)

    def _support_hint(self, lead: str) -> str:
        return f"{lead} Please try again or email {self.settings.CONTACT_SUPPORT_EMAIL}"

    def _clear_challenge(self) -> None:
        self.token = None
        if self._reset_challenge is not None:
            self._reset_challenge()

    # ------------------------------------------------------------------
    # Phase one: the form
    # ------------------------------------------------------------------

    def render(self) -> SubmissionStatus:
        self._started_at = self._clock()
        return self._set(SubmissionState.FILLING)

    def submit_form(self, form: ContactForm) -> SubmissionStatus:
        if form.website:
            logger.warning("Bot detected via honeypot", extra={"event_type": "contact_honeypot"})
            self.form = ContactForm()
            return self._set(SubmissionState.SUCCESS, MSG_HONEYPOT_SUCCESS)

        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        if elapsed < MIN_FILL_SECONDS:
            return self._set(SubmissionState.BLOCKED, MSG_TOO_FAST)

        self.form = form
        if not form.name or not form.email or not form.message:
            return self._error(ErrorKind.VALIDATION, MSG_MISSING_FIELDS, retryable=False)

        email = normalize_email(form.email)
        if not is_valid_email(email):
            return self._error(ErrorKind.VALIDATION, MSG_INVALID_EMAIL, retryable=False)

        self._set(SubmissionState.SUBMITTING, MSG_REDIRECTING)
        try:
            self.store.save(PendingContact(name=form.name, email=email, message=form.message))
        except StorageError:
            return self._error(
                ErrorKind.STORAGE,
                self._support_hint("Could not prepare your submission."),
            )

        self._started_at = self._clock()
        status = self._set(SubmissionState.PENDING_VERIFICATION, MSG_REDIRECTING)
        if self._navigate is not None:
            self._navigate()
        return status

    # ------------------------------------------------------------------
    # Phase two: verification and send
    # ------------------------------------------------------------------

    async def load_pending(self) -> SubmissionStatus:
        self.pending = self.store.load()
        if self.pending is None:
            return self._set(SubmissionState.NO_PENDING, MSG_NO_PENDING)

        bypass = self.settings.TURNSTILE_BYPASS_TOKEN
        if bypass:
            return await self.send_with_token(bypass)
        return self._set(SubmissionState.VERIFYING, MSG_VERIFYING)

    def back_to_form(self) -> SubmissionStatus:
        if self._navigate_back is not None:
            self._navigate_back()
        return self.render()

    async def on_verification_success(self, token: str) -> SubmissionStatus:
        self.token = token
        status = self._set(SubmissionState.VERIFIED, MSG_VERIFIED)
        if self.settings.CONTACT_AUTO_SEND:
            return await self.send()
        return status

    def on_verification_error(self) -> SubmissionStatus:
        self._clear_challenge()
        return self._error(ErrorKind.VERIFICATION_FAILED, MSG_VERIFICATION_FAILED)

    def on_verification_expired(self) -> SubmissionStatus:
        self._clear_challenge()
        return self._error(ErrorKind.VERIFICATION_EXPIRED, MSG_VERIFICATION_EXPIRED)

    def retry(self) -> SubmissionStatus:
        self._clear_challenge()
        return self._set(SubmissionState.VERIFYING, MSG_VERIFYING)

    def cancel(self) -> None:
        """Abort the in-flight request, if any."""
        if self._task is not None and not self._task.done():
            self._canceled_generations.add(self._generation)
            self._task.cancel()

    async def send(self) -> SubmissionStatus:
        if not self.token:
            return self.status
        return await self.send_with_token(self.token)

    async def send_with_token(self, token: str) -> SubmissionStatus:
        if self.pending is None:
            return self._set(SubmissionState.NO_PENDING, MSG_NO_PENDING)

        self.cancel()
        self._generation += 1
        generation = self._generation

        payload = {
            "name": self.pending.name,
            "email": self.pending.email,
            "message": self.pending.message,
            "turnstileToken": token,
        }
        self._set(SubmissionState.SENDING, MSG_SENDING)
        task = asyncio.ensure_future(self._submit(payload))
        self._task = task

        try:
            result = await task
        except asyncio.CancelledError:
            if generation not in self._canceled_generations:
                raise
            self._canceled_generations.discard(generation)
            if generation != self._generation:
                return self.status
            self._clear_challenge()
            return self._error(ErrorKind.REQUEST_CANCELED, MSG_CANCELED)
        except ContactSubmissionError as exc:
            return self._fail(generation, ErrorKind.SUBMISSION_FAILED, str(exc))
        except httpx.TimeoutException:
            return self._fail(generation, ErrorKind.REQUEST_CANCELED, MSG_CANCELED)
        except Exception as exc:
            logger.warning("Contact submission failed: %s", type(exc).__name__)
            return self._fail(
                generation,
                ErrorKind.NETWORK,
                self._support_hint("Failed to send message."),
            )
        finally:
            if self._task is task:
                self._task = None

        if generation != self._generation:
            return self.status

        self.store.clear()
        self.pending = None
        self.token = None
        reference = f" (reference: {result.reference_id})" if result.reference_id else ""
        return self._set(
            SubmissionState.SUCCESS,
            f"Message sent successfully!{reference}",
            reference_id=result.reference_id,
        )

    def _fail(self, generation: int, kind: ErrorKind, message: str) -> SubmissionStatus:
        if generation != self._generation:
            return self.status
        self._clear_challenge()
        return self._error(kind, message)
