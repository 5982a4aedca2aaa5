"""
Custom Exception Classes for the Blog API

Every error a service raises belongs to this hierarchy. Each class carries
the HTTP status the API layer answers with, so routes never build error
responses by hand.
"""


class BlogError(Exception):
    """Base exception for all Blog API errors."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BlogError):
    """Raised when configuration validation fails or required settings are missing."""
    default_message = "Invalid configuration"


# =============================================================================
# Request Errors
# =============================================================================

class ValidationError(BlogError):
    """Raised when input is missing or malformed."""
    status_code = 400
    default_message = "Invalid request"


class ConflictError(BlogError):
    """Raised when a write would duplicate a unique value (e.g. email)."""
    status_code = 400
    default_message = "Resource already exists"


class NotFound(BlogError):
    """Raised when a referenced entity does not exist."""
    status_code = 404
    default_message = "Not found"


# =============================================================================
# Authorization Errors
# =============================================================================

class AuthError(BlogError):
    """Base exception for authorization gate failures."""
    status_code = 401


class Unauthenticated(AuthError):
    """Raised when no valid identity is attached to the request."""
    status_code = 401
    default_message = "Authentication required. Please login."


class MissingToken(Unauthenticated):
    """Raised when the bearer token is absent."""
    default_message = "No token found"


class InvalidToken(Unauthenticated):
    """Raised when the bearer token fails signature or expiry checks."""
    default_message = "Invalid token"


class Forbidden(AuthError):
    """Raised when the identity lacks the role or ownership required."""
    status_code = 403
    default_message = "Access denied"


# =============================================================================
# Collaborator Errors
# =============================================================================

class StoreError(BlogError):
    """Raised when the underlying document store fails."""
    status_code = 500
    default_message = "Database operation failed"

    def __init__(self, message=None, details=None):
        super().__init__(message)
        self.details = details


class DuplicateRecord(StoreError):
    """Raised when a write collides with an existing unique key."""
    default_message = "Record already exists"


class AssetUploadError(BlogError):
    """Raised when the asset storage provider rejects or fails an upload."""
    status_code = 500
    default_message = "File upload failed"
