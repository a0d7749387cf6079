"""
Client side of the contact flow.

    machine = ContactSubmissionMachine(settings=ContactClientSettings())
    machine.render()
    machine.submit_form(ContactForm(name=..., email=..., message=...))
    await machine.load_pending()
    await machine.on_verification_success(token)
    await machine.send()
"""
from app.client.api import ContactApiResponse, ContactSubmissionError, submit_contact_request
from app.client.config import ContactClientSettings
from app.client.machine import (
    ContactForm,
    ContactSubmissionMachine,
    ErrorKind,
    SubmissionState,
    SubmissionStatus,
)
from app.client.storage import InMemorySessionStorage, PendingContact, PendingContactStore

__all__ = [
    "ContactApiResponse",
    "ContactClientSettings",
    "ContactForm",
    "ContactSubmissionError",
    "ContactSubmissionMachine",
    "ErrorKind",
    "InMemorySessionStorage",
    "PendingContact",
    "PendingContactStore",
    "SubmissionState",
    "SubmissionStatus",
    "submit_contact_request",
]
