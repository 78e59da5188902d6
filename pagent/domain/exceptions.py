from __future__ import annotations


class DomainError(Exception):
    """Base for domain errors."""


class ValidationError(DomainError):
    """Request fields are missing or invalid."""


class MalformedMessageError(DomainError):
    """SIWE message text could not be parsed."""


class SiweAuthenticationError(DomainError):
    """SIWE verification failed for a distinguishable reason."""

    def __init__(self, reason: str, message: str | None = None):
        super().__init__(message or reason)
        self.reason = reason


class SignatureVerifierUnavailableError(DomainError):
    """On-chain signature verification could not be reached."""


class UserNotFoundError(DomainError):
    """No user matches the requested key."""


class UserAlreadyExistsError(DomainError):
    """A user already holds the normalized address."""


class UserInactiveError(DomainError):
    """User exists but is disabled."""


class PermissionNotFoundError(DomainError):
    """Spend permission does not exist for the user."""


class DuplicateEventError(DomainError):
    """Authorization id was already recorded."""


class NoActivePermissionError(DomainError):
    """User has no active spend permission for the current time."""


class ChargeExecutionError(DomainError):
    """On-chain spend call failed."""


class WebhookSignatureError(DomainError):
    """Webhook signature missing or invalid."""


class WalletAddressConflictError(DomainError):
    """Wallet address is already linked to another user."""


class ReceiptNotFoundError(DomainError):
    """Receipt does not exist for the user."""
