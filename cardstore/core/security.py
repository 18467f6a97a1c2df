import secrets

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cardstore.core.config import Settings
from cardstore.core.deps import get_settings_dep
from cardstore.core.errors import ApiError

bearer = HTTPBearer(auto_error=False)


def require_write_token(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    settings: Settings = Depends(get_settings_dep),
) -> str:
    """
    Vérifie le jeton `Authorization: Bearer <WRITE_TOKEN>`.
    Sans WRITE_TOKEN configuré, toute écriture est refusée.
    """
    expected = settings.WRITE_TOKEN
    token = creds.credentials if creds else ""
    if not expected or not secrets.compare_digest(token.encode(), expected.encode()):
        raise ApiError.unauthorized()
    return token
