"""Domain errors raised by the service layer.

Routes map these to HTTP responses; services never deal in status codes.
Repository-level errors (InvalidIdentifierError, ValidationFailedError)
live in repositories.base_repository and propagate through services as-is.
"""


class CatalogError(Exception):
    """Base class for catalog domain errors."""

    pass


class InvalidReferenceError(CatalogError):
    """Raised when a referenced entity is missing or not owned by the caller."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Invalid {field}")


class NotFoundOrForbiddenError(CatalogError):
    """Raised when an entity is absent OR belongs to another owner.

    The two cases are intentionally indistinguishable so callers cannot
    probe for other owners' ids.
    """

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"{entity.capitalize()} not found or unauthorized")


class CategoryInUseError(CatalogError):
    """Raised when deleting a category that products still reference."""

    def __init__(self, category_id: str, product_count: int):
        self.category_id = category_id
        self.product_count = product_count
        super().__init__(
            f"Category {category_id} is used by {product_count} product(s)"
        )


class EmailAlreadyRegisteredError(CatalogError):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")
