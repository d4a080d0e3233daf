from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


@dataclass(frozen=True)
class Identity:
    """Claims handed over by the identity provider."""

    user_id: str
    role: str = "user"
    approved_xids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(
    *,
    user_id: str,
    secret: str,
    role: str = "user",
    approved_xids: Sequence[str] = (),
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": str(user_id), "role": role, "xids": list(approved_xids), "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> Identity:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if not sub:
        raise ValueError("token missing sub")
    xids = payload.get("xids") or []
    if not isinstance(xids, list) or not all(isinstance(x, str) for x in xids):
        raise ValueError("token xids must be a list of strings")
    return Identity(user_id=str(sub), role=str(payload.get("role") or "user"), approved_xids=tuple(xids))
