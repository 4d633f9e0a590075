class AppError(Exception):
    """Error de negocio con status HTTP y mensaje corto para el cliente."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(AppError):
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_detail = "Forbidden"


class ValidationError(AppError):
    status_code = 400
    default_detail = "Invalid request"


class NotFound(AppError):
    status_code = 404
    default_detail = "Not found"


class Conflict(AppError):
    status_code = 409
    default_detail = "Conflict"


class UpstreamFailure(AppError):
    status_code = 500
    default_detail = "Upstream service failure"


# Capa de auth
class InvalidCredentials(Exception):
    pass


class VerifierUnavailable(Exception):
    pass


# Capa de store
class DoubleBookingError(Exception):
    def __init__(self, user_id: str, start_at):
        self.user_id = user_id
        self.start_at = start_at
        super().__init__(f"user {user_id} already accepted a session at {start_at}")
