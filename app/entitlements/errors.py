class EntitlementError(Exception):
    code = "INTERNAL"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(EntitlementError):
    code = "NOT_FOUND"


class BadRequestError(EntitlementError):
    code = "BAD_REQUEST"


class UnauthorizedError(EntitlementError):
    code = "UNAUTHORIZED"


class ForbiddenError(EntitlementError):
    code = "FORBIDDEN"


class ConflictError(EntitlementError):
    code = "CONFLICT"


class KeyActivationError(BadRequestError):
    reason = "INVALID"


class KeyNotFoundError(KeyActivationError, NotFoundError):
    code = "NOT_FOUND"
    reason = "NOT_FOUND"


class KeyInactiveError(KeyActivationError):
    reason = "INACTIVE"


class KeyExpiredError(KeyActivationError):
    reason = "EXPIRED"


class WrongKeyKindError(KeyActivationError):
    reason = "WRONG_KIND"


class AlreadyBoundError(KeyActivationError):
    code = "ALREADY_BOUND"
    reason = "ALREADY_BOUND"
