"""
Registry and Storage Error Types
"""

from typing import Optional


class ApiError(Exception):
    """Base class for failures talking to a registry"""

    status_code: Optional[int] = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    @staticmethod
    def from_status(status: int, message: str) -> "ApiError":
        """Map an HTTP status code to the matching error type"""
        if status == 401:
            error = Unauthorized()
        elif status == 403:
            error = Forbidden()
        elif status == 404:
            error = NotFound(message)
        elif status == 429:
            # Retry-After is not read from the response
            error = RateLimited(60)
        elif 500 <= status <= 599:
            error = ServerError(message)
        else:
            error = NetworkError(message)
        error.status_code = status
        return error


class NetworkError(ApiError):
    def __init__(self, message: str):
        super().__init__(f"Network error: {message}")
        self.detail = message


class Unauthorized(ApiError):
    def __init__(self):
        super().__init__("Authentication required")


class Forbidden(ApiError):
    def __init__(self):
        super().__init__("Access forbidden")


class NotFound(ApiError):
    def __init__(self, message: str):
        super().__init__(f"Resource not found: {message}")
        self.detail = message


class RateLimited(ApiError):
    def __init__(self, retry_after: int = 60):
        super().__init__(f"Rate limited, retry after {retry_after} seconds")
        self.retry_after = retry_after


class ServerError(ApiError):
    def __init__(self, message: str):
        super().__init__(f"Server error: {message}")
        self.detail = message


class ParseError(ApiError):
    def __init__(self, message: str):
        super().__init__(f"Parse error: {message}")
        self.detail = message


class InvalidUrl(ApiError):
    def __init__(self, message: str):
        super().__init__(f"Invalid URL: {message}")
        self.detail = message


class StorageError(Exception):
    """Base class for persistence and vault failures"""


class NotAvailable(StorageError):
    """No usable backing store, not even the temp-directory fallback"""

    def __init__(self):
        super().__init__("Storage not available")


class KeyNotFound(StorageError):
    """Kept for the storage error set; adapters report an absent key by returning None"""

    def __init__(self, key: str):
        super().__init__(f"Key not found: {key}")
        self.key = key


class SerializationError(StorageError):
    def __init__(self, message: str):
        super().__init__(f"Serialization error: {message}")


class EncryptionError(StorageError):
    def __init__(self, message: str):
        super().__init__(f"Encryption error: {message}")


class StorageIoError(StorageError):
    def __init__(self, message: str):
        super().__init__(f"IO error: {message}")


class VaultLocked(EncryptionError):
    """Raised when the vault is used before a key has been supplied"""

    def __init__(self):
        super().__init__("vault key has not been set")


class KeyAlreadyInitialized(EncryptionError):
    """Raised on a second attempt to set the vault key"""

    def __init__(self):
        super().__init__("vault key already initialized, restart required to use a new key")


class IncorrectPassword(StorageError):
    """The stored registry list could not be decrypted with the supplied passphrase"""

    def __init__(self, cause: Exception):
        super().__init__(f"Incorrect password or corrupt configuration. Error: {cause}")
        self.cause = cause


class RestartRequired(StorageError):
    """The process must be restarted before a new vault key can be set"""

    def __init__(self, reason: str):
        super().__init__(f"Restart required: {reason}")
        self.reason = reason
