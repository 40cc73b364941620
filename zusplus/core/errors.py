from __future__ import annotations

from fastapi import HTTPException, status


class AppError(HTTPException):
    pass


def unauthorized(message: str = "Unauthorized"):
    raise AppError(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "UNAUTHORIZED", "message": message})

def payment_required(message: str):
    raise AppError(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail={"code": "PAYMENT_REQUIRED", "message": message})

def too_many_requests(message: str):
    raise AppError(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail={"code": "RATE_LIMITED", "message": message})

def bad_gateway(code: str, message: str):
    raise AppError(status_code=status.HTTP_502_BAD_GATEWAY, detail={"code": code, "message": message})

def service_unavailable(code: str, message: str):
    raise AppError(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail={"code": code, "message": message})


# ============================================================
# Domain-Fehler (werden in Services/Gate abgefangen)
# ============================================================

class ZusPlusError(Exception):
    """Basisklasse; `message` ist für den Nutzer gedacht."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(ZusPlusError):
    pass


class IdentityProviderError(ZusPlusError):
    pass


class InvalidCredentialsError(IdentityProviderError):
    pass


class NotAuthenticatedError(IdentityProviderError):
    pass


class InvalidCodeError(IdentityProviderError):
    pass


class ProviderUnavailableError(IdentityProviderError):
    pass


class PensionServiceError(ZusPlusError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RecommendationServiceError(ZusPlusError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
