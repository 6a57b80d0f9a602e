"""Domain-specific exceptions with user-ready messages for the settings store."""


class BusinessLogicException(Exception):
    """Base exception class for business logic errors.

    All business logic exceptions include user-ready messages that can be
    displayed directly to an operator without further message construction.
    """

    def __init__(self, message: str, error_code: str) -> None:
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class RecordNotFoundException(BusinessLogicException):
    """Exception raised when a requested record is not found."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        message = f"{resource_type} {identifier} was not found"
        super().__init__(message, error_code="RECORD_NOT_FOUND")


class LockedSettingException(BusinessLogicException):
    """Exception raised when a locked setting is modified or deleted."""

    def __init__(self, key: str, operation: str) -> None:
        self.key = key
        self.operation = operation
        message = f"Cannot {operation} setting {key} because it is locked"
        super().__init__(message, error_code="SETTING_LOCKED")


class InvalidOperationException(BusinessLogicException):
    """Exception raised when an operation cannot be performed due to business rules."""

    def __init__(self, operation: str, cause: str) -> None:
        self.operation = operation
        self.cause = cause
        message = f"Cannot {operation} because {cause}"
        super().__init__(message, error_code="INVALID_OPERATION")


class ValidationException(BusinessLogicException):
    """Exception raised when validation fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="VALIDATION_FAILED")


class StorageUnavailableException(BusinessLogicException):
    """Exception raised when the backing database cannot be reached.

    The failure is transient; callers may retry the operation.
    """

    def __init__(self, operation: str, cause: str) -> None:
        self.operation = operation
        self.cause = cause
        message = f"Cannot {operation} because storage is unavailable: {cause}"
        super().__init__(message, error_code="STORAGE_UNAVAILABLE")


class DecryptionException(BusinessLogicException):
    """Exception raised when a ciphertext cannot be decrypted."""

    def __init__(self, cause: str) -> None:
        self.cause = cause
        message = f"Cannot decrypt value because {cause}"
        super().__init__(message, error_code="DECRYPTION_FAILED")
