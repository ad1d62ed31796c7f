"""Domain exceptions for the business escrow service.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware,
which maps each family below to one status code.
"""


class EscrowError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "ESCROW_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Authentication / Authorization ---


class UnauthenticatedError(EscrowError):
    """Raised when a request carries no valid session."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message=message, code="UNAUTHORIZED")


class WebhookAuthenticationError(EscrowError):
    """Raised when a provider callback presents the wrong shared secret.

    The message never includes either secret value.
    """

    def __init__(self) -> None:
        super().__init__(message="Invalid webhook secret", code="INVALID_WEBHOOK_SECRET")


class ForbiddenError(EscrowError):
    """Raised when the caller is authenticated but not a party to the resource."""

    def __init__(
        self,
        message: str = "You do not have access to this resource",
        code: str = "ACCESS_DENIED",
    ) -> None:
        super().__init__(message=message, code=code)


class AdminRequiredError(ForbiddenError):
    """Raised when a non-admin attempts an admin-only operation."""

    def __init__(self) -> None:
        super().__init__(message="Admin access required", code="ADMIN_REQUIRED")


# --- Not Found ---


class ResourceNotFoundError(EscrowError):
    """Base for missing resources."""

    def __init__(self, resource: str, resource_id: object, code: str) -> None:
        super().__init__(message=f"{resource} not found: {resource_id}", code=code)
        self.resource_id = resource_id


class EscrowNotFoundError(ResourceNotFoundError):
    def __init__(self, escrow_id: object) -> None:
        super().__init__("Escrow transaction", escrow_id, "ESCROW_NOT_FOUND")


class ListingNotFoundError(ResourceNotFoundError):
    def __init__(self, listing_id: object) -> None:
        super().__init__("Listing", listing_id, "LISTING_NOT_FOUND")


class LoiNotFoundError(ResourceNotFoundError):
    def __init__(self, loi_id: object) -> None:
        super().__init__("LOI", loi_id, "LOI_NOT_FOUND")


class ChecklistNotFoundError(ResourceNotFoundError):
    def __init__(self, checklist_id: object) -> None:
        super().__init__("Migration checklist", checklist_id, "CHECKLIST_NOT_FOUND")


class TaskNotFoundError(ResourceNotFoundError):
    def __init__(self, task_id: object) -> None:
        super().__init__("Migration task", task_id, "TASK_NOT_FOUND")


# --- Invalid Input ---


class InvalidInputError(EscrowError):
    """Raised when request data fails a business validation rule."""

    def __init__(self, message: str, code: str = "INVALID_INPUT") -> None:
        super().__init__(message=message, code=code)


# --- Invalid Transition ---


class InvalidTransitionError(EscrowError):
    """Raised when an operation is not allowed in the resource's current state."""

    def __init__(self, message: str, code: str = "INVALID_TRANSITION") -> None:
        super().__init__(message=message, code=code)


class InvalidStateTransitionError(InvalidTransitionError):
    """Raised when a party tries to move an escrow backward.

    Example: complete -> funded.
    """

    def __init__(self, current_state: str, attempted_state: str) -> None:
        super().__init__(
            message=f"Cannot transition from {current_state} to {attempted_state}",
            code="INVALID_STATUS_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_state = attempted_state


# --- Conflict ---


class ConflictError(EscrowError):
    """Raised when the operation collides with existing state."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message=message, code=code)


class ChecklistAlreadyExistsError(ConflictError):
    def __init__(self, escrow_id: object) -> None:
        super().__init__(
            message=f"Migration checklist already exists for escrow: {escrow_id}",
            code="CHECKLIST_ALREADY_EXISTS",
        )


class DuplicateOperationError(ConflictError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
