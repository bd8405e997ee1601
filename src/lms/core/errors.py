"""Domain errors raised by the core services.

The web layer maps each class to an HTTP status through ``status_code``;
the CLI prints the message and exits non-zero.
"""


class LMSError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(LMSError):
    """Raised when a referenced entity does not exist (or is not visible)."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id:
            message = f"{entity} '{entity_id}' not found"
        else:
            message = f"{entity} not found"
        super().__init__(message)


class PermissionDeniedError(LMSError):
    """Raised when the acting user may not perform the operation."""

    status_code = 403


class ValidationError(LMSError):
    """Raised when input violates a business rule."""

    status_code = 400


class ConflictError(LMSError):
    """Raised when the operation would duplicate an existing row."""

    status_code = 409


class PaymentError(LMSError):
    """Raised when the payment provider rejects or fails a request."""

    status_code = 502


class WebhookSignatureError(LMSError):
    """Raised when a webhook payload cannot be authenticated."""

    status_code = 400


class FeatureDisabledError(LMSError):
    """Raised when an administrator has switched a platform feature off."""

    status_code = 403

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"The {feature} feature is currently disabled")


class MaintenanceModeError(LMSError):
    """Raised for non-admin requests while the site is under maintenance."""

    status_code = 503
