from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import Settings, load_settings

bearer = HTTPBearer()
settings = load_settings()


def _jwt_secret(conf: Settings) -> str:
    if not conf.jwt_secret:
        raise HTTPException(500, "JWT_SECRET is not set")
    return conf.jwt_secret


def create_access_token(user_id: int, expires_in: timedelta = timedelta(hours=1),
                        conf: Settings | None = None) -> str:
    conf = conf or settings
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, _jwt_secret(conf), algorithm=conf.jwt_algorithm)


def get_user_id(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> int:
    """
    JWT auth. Token is expected in Authorization: Bearer <token>
    """
    token = creds.credentials
    secret = _jwt_secret(settings)

    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
        return int(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
        raise HTTPException(401, "Invalid token")
