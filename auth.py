import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings, get_settings
from database import USERS, get_db, parse_object_id, serialize_doc

logger = logging.getLogger("drapegear.auth")

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
auth_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def token_claims(user: Dict[str, Any]) -> Dict[str, Any]:
    # only an opaque id and the role, never the user record
    return {"sub": str(user["_id"]), "role": user.get("role", "user")}


def _encode(claims: Dict[str, Any], secret: str, expires_delta: timedelta, token_type: str) -> str:
    to_encode = claims.copy()
    to_encode.update({"type": token_type, "exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(claims: Dict[str, Any], settings: Settings) -> str:
    return _encode(claims, settings.access_token_secret, timedelta(minutes=settings.access_token_expire_minutes), ACCESS)


def create_refresh_token(claims: Dict[str, Any], settings: Settings) -> str:
    return _encode(claims, settings.refresh_token_secret, timedelta(days=settings.refresh_token_expire_days), REFRESH)


def decode_token(token: str, secret: str, token_type: str = ACCESS) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if not payload.get("sub") or payload.get("type") != token_type:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return payload


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(user)
    # Never send password hash
    user.pop("password", None)
    return user


def find_user(db: Database, user_id: str) -> Optional[Dict[str, Any]]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    return db[USERS].find_one({"_id": oid})


# Dependencies

def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Unauthorized access")
    return decode_token(credentials.credentials, settings.access_token_secret, ACCESS)


def current_user(claims: Dict[str, Any] = Depends(verify_token), db: Database = Depends(get_db)) -> Dict[str, Any]:
    user = find_user(db, claims["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(role: str):
    """Build a dependency that admits only users whose stored role is `role`."""

    def checker(user: Dict[str, Any] = Depends(current_user)) -> Dict[str, Any]:
        if user.get("role") != role:
            logger.info("Refused %s-only access for user %s", role, user.get("_id"))
            raise HTTPException(status_code=403, detail="Forbidden access")
        return user

    return checker


verify_admin = require_role("admin")
verify_user = require_role("user")
