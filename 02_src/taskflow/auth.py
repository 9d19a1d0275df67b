"""Bearer token helpers.

Tokens are HS256 JWTs carrying the caller's user id (`sub`), team and role.
Issuing tokens to end users is left to an external login service;
create_access_token exists for development and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from .errors import AuthenticationError
from .models import Principal


def create_access_token(
    user_id: str,
    team_id: str,
    role: str,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60 * 24,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    claims = {"sub": user_id, "team_id": team_id, "role": role, "exp": expire}
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> Principal:
    """Validate a token and return the caller it names."""
    if not token:
        raise AuthenticationError("Missing token")
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e

    user_id = payload.get("sub")
    team_id = payload.get("team_id")
    role = payload.get("role")
    if not user_id or not team_id or role not in ("admin", "member"):
        raise AuthenticationError("Token is missing required claims")
    return Principal(user_id=user_id, team_id=team_id, role=role)
