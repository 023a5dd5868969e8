"""Exception taxonomy for the letter workflow service."""


class LetterflowError(Exception):
    """Base exception for letterflow."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(LetterflowError):
    """Missing or malformed mandatory input."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(LetterflowError):
    """Referenced letter, template, reviewer slot, user or file does not exist."""

    def __init__(self, resource: str, resource_id: str | None):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class InvalidStateError(LetterflowError):
    """Operation attempted while the letter is in the wrong workflow status."""

    def __init__(self, message: str, current_status: str | None = None):
        details = {"workflow_status": current_status} if current_status else None
        super().__init__("INVALID_STATE", message, details, status_code=400)


class AuthenticationError(LetterflowError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class AuthorizationError(LetterflowError):
    """Caller is not the actor the letter is waiting on."""

    def __init__(self, message: str = "Not authorized to act on this letter"):
        super().__init__("AUTHORIZATION_ERROR", message, status_code=403)


class DependencyFailureError(LetterflowError):
    """PDF bake, QR generation or artifact upload failed; the transition is aborted."""

    def __init__(self, message: str, details=None):
        super().__init__("DEPENDENCY_FAILURE", message, details, status_code=500)
