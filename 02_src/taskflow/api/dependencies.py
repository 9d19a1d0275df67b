"""Request-scoped dependencies shared by the routers."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..app import Application
from ..auth import decode_access_token
from ..errors import AuthenticationError
from ..models import Principal

security = HTTPBearer(auto_error=False)


def create_principal_dependency(app: Application):
    """Build the dependency resolving the caller from a bearer token."""

    async def get_principal(
        credentials: HTTPAuthorizationCredentials | None = Depends(security),
    ) -> Principal:
        if credentials is None:
            raise AuthenticationError("Authorization required")
        return decode_access_token(
            credentials.credentials,
            app.settings.jwt_secret,
            app.settings.jwt_algorithm,
        )

    return get_principal
