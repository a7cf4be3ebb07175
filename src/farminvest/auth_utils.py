from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from farminvest import config
from farminvest.exceptions import AuthenticationError, TokenError


_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
_bearer = HTTPBearer(auto_error=False)

_REQUIRED_CLAIMS = ("id", "email", "name")


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh salt."""
    return _pwd_context.hash(password)


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a plaintext password against a stored hash.

    A malformed or unrecognised stored hash counts as a mismatch.
    """
    try:
        return _pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


# PUBLIC_INTERFACE
def create_user_access_token(
    user_id: int,
    email: str,
    name: str,
    issued_at: Optional[datetime] = None,
) -> str:
    """Create a signed access token carrying the user's id, email and name."""
    issued_at = issued_at or datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=config.jwt_exp_minutes())
    payload = {
        "id": user_id,
        "email": email,
        "name": name,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, config.jwt_secret(), algorithm=config.jwt_algorithm())


# PUBLIC_INTERFACE
def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry (no leeway) and return the claims."""
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret(),
            algorithms=[config.jwt_algorithm()],
            options={"require_exp": True, "leeway": 0},
        )
    except JWTError:
        raise TokenError()
    if any(claims.get(name) is None for name in _REQUIRED_CLAIMS):
        raise TokenError()
    return claims


# PUBLIC_INTERFACE
def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Dict[str, Any]:
    """Dependency returning the token claims of the caller.

    No bearer token is a 401; a token that fails verification is a 403.
    """
    if credentials is None:
        raise AuthenticationError()
    return decode_access_token(credentials.credentials)
