"""
Catalog Shop - Custom Exceptions
=================================
Business-level exceptions that can be caught and converted to HTTP responses.
"""


class ShopError(Exception):
    """Base exception for all business logic errors."""
    status_code = 500

    def __init__(self, message: str = "Internal server error."):
        self.message = message
        super().__init__(self.message)


class ValidationError(ShopError):
    """Raised for rejected input (bad id, bad price, unsupported image, oversized upload)."""
    status_code = 400


class NotFoundError(ShopError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class ConflictError(ShopError):
    """Raised for duplicate names and deletes blocked by references."""
    status_code = 409


class CatalogUnavailableError(ShopError):
    """Raised by the catalog client when the API can't be reached or answers garbage."""
    status_code = 502
