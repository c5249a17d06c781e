from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from src.auth.utils import verify_token
from src.reservations.schemas import Actor, ActorRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Get the user acting on this request from the bearer token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = verify_token(token, credentials_exception)

    try:
        role = ActorRole(payload.get("role", ActorRole.USER.value))
    except ValueError:
        raise credentials_exception

    return Actor(user_id=str(payload["user_id"]), role=role)

def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Require admin role for access"""
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return actor
