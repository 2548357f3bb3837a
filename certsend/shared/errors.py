"""Failures raised by recipient import, certificate production and dispatch.

Services raise these; the route or CLI command that triggered the action
catches :class:`CertSendError`, logs it and shows ``str(exc)`` to the
operator as a one-line notice.
"""

from __future__ import annotations


class CertSendError(RuntimeError):
    """Base class for handled, user-facing failures."""

    notice = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.notice)


class SpreadsheetImportError(CertSendError):
    """The uploaded file could not be read as tabular data."""

    notice = "The uploaded file could not be read as a spreadsheet."


class PersistenceError(CertSendError):
    """The database rejected a write or delete; nothing was applied."""

    notice = "The change could not be saved. Nothing was modified."


class GenerationError(CertSendError):
    notice = "Could not generate the certificate. Please try again."


class QuotaExceeded(GenerationError):
    notice = "Certificate generation quota exceeded. Please wait and try again later."


class MissingLinkError(CertSendError):
    notice = "No download link available for this recipient."


class VerificationError(CertSendError):
    notice = "The certificate link could not be verified."


class RecipientNotFound(CertSendError):
    notice = "Recipient not found."


class NotEligibleError(CertSendError):
    """The recipient's status does not allow the requested action."""

    notice = "This recipient already has a certificate."
