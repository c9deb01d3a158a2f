"""Errores de dominio de la caja.

Los routers no los capturan: `app.main` registra handlers que los traducen
a respuestas HTTP con `{"detail": CODE, "message": texto}`.
"""


class PosError(Exception):
    code = "POS_ERROR"
    status_code = 500

    def __init__(self, message: str = "", **extra):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra


class ValidationError(PosError):
    """Carrito mal formado o instante sin zona horaria."""

    code = "VALIDATION_ERROR"
    status_code = 422


class RegisterClosedError(PosError):
    code = "REGISTER_CLOSED"
    status_code = 409

    def __init__(self, message: str = "Abre la caja primero", **extra):
        super().__init__(message, **extra)


class NotFoundError(PosError):
    code = "NOT_FOUND"
    status_code = 404


class RateLimitedError(PosError):
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str = "Demasiadas operaciones", retry_after: float = 0.0):
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


class PersistenceError(PosError):
    code = "PERSISTENCE_ERROR"
    status_code = 503


class ConsistencyError(PosError):
    # Interno: lectura-modificación-escritura perdió contra otra escritura
    code = "CONSISTENCY_ERROR"
    status_code = 503
