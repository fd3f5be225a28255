from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from lounge.config import EnginePolicy, engine_policy, settings
from lounge.db import get_db
from lounge.schemas.common import Actor
from lounge.services.uow import ServiceContext
from lounge.util.notify import Notifier, build_notifier

auth_scheme = HTTPBearer(auto_error=False)

_policy = engine_policy(settings)
_notifier = build_notifier(settings)

def require_actor(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> Actor:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = jwt.decode(creds.credentials, settings.APP_SECRET, algorithms=["HS256"],
                          issuer=settings.JWT_ISS, options={"verify_aud": False})
        return Actor(user_id=data["sub"], username=data.get("username") or data["sub"],
                     role=data.get("role") or "staff")
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_role(*roles: str):
    def _dep(actor: Actor = Depends(require_actor)) -> Actor:
        # admin passes every role check
        if actor.role == "admin" or actor.role in roles:
            return actor
        raise HTTPException(status_code=403, detail=f"Requires role: {', '.join(roles)}")
    return _dep

def get_policy() -> EnginePolicy:
    return _policy

def get_notifier() -> Notifier:
    return _notifier

def get_ctx(db: Session = Depends(get_db), actor: Actor = Depends(require_actor),
            policy: EnginePolicy = Depends(get_policy),
            notifier: Notifier = Depends(get_notifier)) -> ServiceContext:
    return ServiceContext(db=db, policy=policy, actor=actor, notifier=notifier)
