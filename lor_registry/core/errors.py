"""Registry errors. Typed, no HTTP."""


class RegistryError(Exception):
    """Base for all registry errors."""

    error_type = "REGISTRY_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {"error_type": self.error_type, "message": self.message}


class ValidationError(RegistryError):
    """Raised for malformed input such as an empty required text field."""

    error_type = "VALIDATION_ERROR"


class NotFoundError(RegistryError):
    """Raised when a referenced student id does not exist."""

    error_type = "NOT_FOUND"


class UnauthorizedError(RegistryError):
    """Raised when the caller lacks the owner or approver role."""

    error_type = "UNAUTHORIZED"


class InvalidStateError(RegistryError):
    """Raised when a transition is not legal from the record's current state."""

    error_type = "INVALID_STATE"


class StoreUnavailableError(RegistryError):
    """Raised when the underlying storage cannot be reached. Transient."""

    error_type = "STORE_UNAVAILABLE"


class ConfigurationError(RegistryError):
    """Raised for invalid settings, including an owner mismatch on an existing registry."""

    error_type = "CONFIGURATION_ERROR"
