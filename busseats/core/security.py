"""
Party identity taken from tokens issued by the external identity provider
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import enum
import logging

from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from busseats.config import settings
from busseats.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class PartyRole(str, enum.Enum):
    PASSENGER = "passenger"
    OPERATOR = "operator"
    ADMIN = "admin"


@dataclass(frozen=True)
class Party:
    """Authenticated actor; the core only ever sees the opaque id and role"""
    party_id: str
    role: PartyRole


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Mint a token the way the identity provider does; used by tests and local tooling
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Party:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        raise AuthenticationError("Could not validate credentials")

    party_id = payload.get("sub")
    if not party_id:
        raise AuthenticationError("Token has no subject")

    try:
        role = PartyRole(payload.get("role", PartyRole.PASSENGER.value))
    except ValueError:
        raise AuthenticationError("Token carries an unknown role")
    return Party(party_id=str(party_id), role=role)


async def get_optional_party(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[Party]:
    """Party if a bearer token was sent, None for anonymous callers"""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


async def get_current_party(
    party: Optional[Party] = Depends(get_optional_party)
) -> Party:
    if party is None:
        raise AuthenticationError("Not authenticated")
    return party


def require_role(*roles: PartyRole):
    """Dependency factory restricting an endpoint to the given roles"""

    async def checker(party: Party = Depends(get_current_party)) -> Party:
        if party.role not in roles:
            raise AuthorizationError(f"Requires role: {', '.join(r.value for r in roles)}")
        return party

    return checker
