import jwt
from datetime import datetime, timedelta, timezone
from lounge.config import settings

def create_token(sub: str, username: str | None = None, role: str = "staff") -> str:
    """Issue an access token in the shape the auth service hands out (local and test use)."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {"sub": sub, "username": username or sub, "role": role,
               "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")
