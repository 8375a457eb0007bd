from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Depends, Request, UploadFile
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.datastructures import UploadFile as StarletteUploadFile

import errors
from models import UserRole

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def build_limiter(enabled: bool = True) -> Limiter:
    # one per app, request counters are never shared between apps
    return Limiter(key_func=get_remote_address, enabled=enabled)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- IDENTITY ---

@dataclass(frozen=True)
class Identity:
    id: int
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(identity: Identity, secret: str, expires_minutes: int = 60, now: Optional[datetime] = None) -> str:
    issued = now or utcnow()
    to_encode = {
        "sub": str(identity.id),
        "email": identity.email,
        "role": identity.role.value,
        "exp": int((issued + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def extract_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise errors.Unauthenticated("No token provided. Authorization denied")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise errors.Unauthenticated("No token provided. Authorization denied")
    return token.strip()


def decode_identity(token: str, secret: str, now: Optional[datetime] = None) -> Identity:
    """
    Verify signature and expiry of a token and return the identity it carries.
    Expiry is checked against `now` so the result only depends on its inputs.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"verify_exp": False})
    except ExpiredSignatureError:
        raise errors.TokenExpired()
    except JWTError:
        raise errors.InvalidToken()

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        raise errors.InvalidToken()
    if (now or utcnow()).timestamp() >= exp:
        raise errors.TokenExpired()

    try:
        return Identity(
            id=int(payload["sub"]),
            email=str(payload["email"]),
            role=UserRole(payload["role"]),
        )
    except (KeyError, TypeError, ValueError):
        raise errors.InvalidToken()


# --- DEPENDENCIES ---

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _identity_from_request(request: Request) -> Identity:
    settings = request.app.state.settings
    token = extract_bearer(request.headers.get("Authorization"))
    return decode_identity(token, settings.jwt_secret_key)


def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),  # registers the bearer scheme in the OpenAPI docs
) -> Identity:
    """
    Returns the identity of the caller.
    The identity is decoded from the JWT token, the database is not consulted.
    """
    return _identity_from_request(request)


def get_optional_identity(request: Request) -> Optional[Identity]:
    # anonymous callers are fine on public listings, a broken token is not
    if request.headers.get("Authorization") is None:
        return None
    return _identity_from_request(request)


def require_roles(*roles: UserRole) -> Callable[..., Identity]:
    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        authorize(
            identity,
            has_role(*roles),
            f"Access denied. Role '{identity.role.value}' is not allowed for this resource",
        )
        return identity

    return dependency


# --- AUTHORIZATION ---

Predicate = Callable[[Identity], bool]


def authorize(identity: Identity, predicate: Predicate, detail: str = "Action not allowed") -> None:
    if not predicate(identity):
        raise errors.Forbidden(detail)


def has_role(*roles: UserRole) -> Predicate:
    return lambda identity: identity.role in roles


def owner_or_admin(owner_user_id: Optional[int]) -> Predicate:
    return lambda identity: identity.is_admin or (owner_user_id is not None and identity.id == owner_user_id)


# --- REQUEST BODIES ---

async def read_payload(request: Request) -> Tuple[Dict[str, Any], Dict[str, UploadFile]]:
    """
    Read a JSON or multipart/urlencoded body.
    Returns the plain fields and the uploaded files (by field name) separately.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise errors.ValidationFailed("Malformed JSON body")
        if not isinstance(body, dict):
            raise errors.ValidationFailed("JSON body must be an object")
        return body, {}

    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        fields: Dict[str, Any] = {}
        files: Dict[str, UploadFile] = {}
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                # browsers send an empty part when no file was picked
                if value.filename:
                    files[key] = value
            else:
                fields[key] = value
        return fields, files

    return {}, {}


def parse_model(model: type, data: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as ve:
        first = ve.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise errors.ValidationFailed(f"{field}: {first.get('msg')}" if field else str(first.get("msg")))
