from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from starlette import status


class APIError(HTTPException):
    """Base class for errors that map onto a JSON error response.

    ``code`` is a stable machine-readable kind, ``message`` the German text
    shown to the client. ``errors`` carries per-field validation details.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "error"
    message = "Ein Fehler ist aufgetreten"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
        detail: Optional[str] = None,
    ):
        self.message = message or self.message
        self.errors = errors
        self.debug_detail = detail
        super().__init__(
            status_code=self.status_code, detail=self.message, headers=headers
        )

    def to_dict(self, include_debug: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        if include_debug and self.debug_detail:
            body["detail"] = self.debug_detail
        return body


class ValidationError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Validierungsfehler"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_error"
    message = "Nicht authentifiziert"

    def __init__(self, message: Optional[str] = None, **kwargs):
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class TokenMissingError(AuthenticationError):
    code = "token_missing"
    message = "Keine Authentifizierung - Token fehlt"


class InvalidTokenError(AuthenticationError):
    code = "invalid_token"
    message = "Ungültiger Token"


class TokenExpiredError(AuthenticationError):
    code = "token_expired"
    message = "Token abgelaufen"


class InvalidCredentialsError(AuthenticationError):
    code = "invalid_credentials"
    message = "Ungültige Anmeldedaten"


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Keine Berechtigung für diese Aktion"


class InactiveAccountError(AuthorizationError):
    code = "account_inactive"
    message = "Konto ist nicht aktiv"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Ressource nicht gefunden"


class ConflictError(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Ressource existiert bereits"


class InternalError(APIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    message = "Interner Serverfehler"


class DependencyError(APIError):
    """An external collaborator (database, CDN, SMTP) is unavailable. Retryable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"
    message = "Dienst vorübergehend nicht verfügbar"


class MediaServiceError(DependencyError):
    code = "media_service_error"
    message = "Bild-Upload fehlgeschlagen"


class MailDeliveryError(DependencyError):
    code = "mail_delivery_error"
    message = "E-Mail konnte nicht gesendet werden"
