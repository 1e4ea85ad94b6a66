"""
Exception hierarchy for the PnD wallet service.

Design:
    - Each exception carries an `http_status_code` for automatic handler mapping.
    - `to_dict()` returns full internal details (for logging).
    - `to_safe_dict()` returns a sanitized response (for client-facing APIs).
    - Transfer failures share `TransferError`, which carries the attempted
      reference so callers can correlate a failed transfer with the logs.
"""

from typing import Optional, Dict, Any


class BaseAppError(Exception):
    """Base exception for all application-specific errors"""

    http_status_code: int = 500

    def __init__(self, message: str, details: str = None, context: Dict[str, Any] = None):
        self.message = message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Full details for internal logging, never sent to clients."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context,
        }

    def to_safe_dict(self) -> Dict[str, Any]:
        """Sanitized response safe for end-users, without internal details."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class TransferValidationError(BaseAppError):
    """Raised when a transfer request breaks a business rule (non-positive amount, self-transfer)"""

    http_status_code: int = 400

    def __init__(self, message: str, field: str = None, value: Any = None):
        self.field = field
        self.value = value
        context = {}

        if field:
            context["field"] = field
            if value is not None:
                context["invalid_value"] = str(value)

        details = f"Validation failed for field: {field}" if field else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        if self.field:
            result["field"] = self.field
        return result


class TransferError(BaseAppError):
    """Base class for failures of a transfer that reached the storage layer"""

    kind: str = "Unknown"

    def __init__(
        self,
        message: str,
        details: str = None,
        context: Dict[str, Any] = None,
        reference: Optional[str] = None,
    ):
        self.reference = reference
        super().__init__(message, details, context)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind
        result["reference"] = self.reference
        return result

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        if self.reference:
            result["reference"] = self.reference
        return result


class PartyNotFoundError(TransferError):
    """Raised when the sender or recipient of a transfer does not exist"""

    http_status_code: int = 404
    kind = "PartyNotFound"

    def __init__(self, who: str, party_id: str, collection: str = None, reference: str = None):
        self.who = who
        self.party_id = party_id
        self.collection = collection
        super().__init__(
            f"{who.capitalize()} not found",
            f"{who} '{party_id}' does not exist in {collection or 'storage'}",
            {"who": who, "party_id": party_id, "collection": collection},
            reference=reference,
        )

    def to_safe_dict(self) -> Dict[str, Any]:
        result = super().to_safe_dict()
        result["who"] = self.who
        return result


class InsufficientFundsError(TransferError):
    """Raised when the sender's balance is below the requested amount"""

    http_status_code: int = 422
    kind = "InsufficientFunds"

    def __init__(self, party_id: str, balance=None, amount=None, reference: str = None):
        self.party_id = party_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            "Insufficient wallet balance",
            f"Balance {balance} is below requested amount {amount}",
            {"party_id": party_id, "balance": str(balance), "amount": str(amount)},
            reference=reference,
        )


class TransientConflictError(TransferError):
    """Raised when the store rejects a commit because another transaction touched the same documents"""

    http_status_code: int = 503
    kind = "TransientConflict"

    def __init__(self, message: str = "Concurrent update detected, please retry", attempts: int = None, reference: str = None):
        self.attempts = attempts
        context = {}
        if attempts:
            context["attempts"] = attempts
        details = f"Gave up after {attempts} attempts" if attempts else None
        super().__init__(message, details, context, reference=reference)


class StorageError(TransferError):
    """Raised for storage-layer failures that are not write conflicts (network, permission)"""

    http_status_code: int = 500
    kind = "Unknown"

    def __init__(self, message: str, operation: str = None, database_error: str = None, reference: str = None):
        self.operation = operation
        self.database_error = database_error
        context = {}
        if operation:
            context["operation"] = operation
        if database_error:
            context["database_error"] = database_error

        details = f"Failed storage operation: {operation}" if operation else None
        super().__init__(message, details, context, reference=reference)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never expose operation names or driver errors to clients."""
        result = {
            "error": "StorageError",
            "message": "An internal error occurred. Please try again later.",
        }
        if self.reference:
            result["reference"] = self.reference
        return result


class NotFoundError(BaseAppError):
    """Raised when a requested resource is not found"""

    http_status_code: int = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found",
            f"{resource} with id '{identifier}' does not exist",
            {"resource": resource, "identifier": identifier},
        )


class SecurityError(BaseAppError):
    """Raised for authentication failures (missing or invalid admin key)"""

    http_status_code: int = 401

    def __init__(self, message: str, security_context: str = None):
        self.security_context = security_context
        context = {}
        if security_context:
            context["security_context"] = security_context

        details = f"Security failure in: {security_context}" if security_context else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never expose security_context to clients."""
        return {
            "error": "SecurityError",
            "message": self.message,
        }


class ConfigurationError(BaseAppError):
    """Raised for configuration-related issues (missing env vars, invalid settings)"""

    http_status_code: int = 500

    def __init__(self, message: str, config_key: str = None, expected_value: str = None):
        self.config_key = config_key
        self.expected_value = expected_value
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_value:
            context["expected_value"] = expected_value

        details = f"Configuration error for: {config_key}" if config_key else None
        super().__init__(message, details, context)

    def to_safe_dict(self) -> Dict[str, Any]:
        """Never expose config internals to clients."""
        return {
            "error": "ConfigurationError",
            "message": "A server configuration error occurred.",
        }
