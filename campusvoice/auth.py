# Administrator credentials (bcrypt) and signed session tokens (JWT)

import asyncio
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.errors import PyMongoError

from . import config
from .store import StoreError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password cannot exceed 72 bytes")
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(email: str, expire_hours: int = config.JWT_EXPIRE_HOURS) -> str:
    to_encode = {"sub": email, "role": "admin", "jti": uuid.uuid4().hex,
                 "exp": datetime.now(timezone.utc) + timedelta(hours=expire_hours)}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


class TokenBlacklist:
    """Revoked tokens, kept for the lifetime of the process."""

    def __init__(self, max_size: int = 10000):
        self._tokens: set = set()
        self.max_size = max_size

    def revoke(self, token: str):
        self._tokens.add(token)
        # Expired tokens are rejected anyway, so a full reset only forgets stale entries
        if len(self._tokens) > self.max_size:
            self._tokens.clear()
            self._tokens.add(token)

    def __contains__(self, token: str) -> bool:
        return token in self._tokens


# ---------------------------------------------------------------------------
# Admin directories
# ---------------------------------------------------------------------------
class AdminDirectory(Protocol):
    async def get_password_hash(self, email: str) -> Optional[str]: ...


class InMemoryAdminDirectory:
    def __init__(self, hashed: Optional[Dict[str, str]] = None):
        self._hashed = {k.lower(): v for k, v in (hashed or {}).items()}

    @classmethod
    def from_passwords(cls, accounts: Dict[str, str]) -> "InMemoryAdminDirectory":
        return cls({email: hash_password(pw) for email, pw in accounts.items()})

    async def get_password_hash(self, email: str) -> Optional[str]:
        return self._hashed.get(email.lower())


class MongoAdminDirectory:
    def __init__(self, collection, executor: ThreadPoolExecutor):
        self.collection = collection
        self.executor = executor

    async def get_password_hash(self, email: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            doc = await loop.run_in_executor(self.executor, self.collection.find_one,
                                             {"_id": email.lower()})
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return doc["hashed_password"] if doc else None


async def authenticate(directory: AdminDirectory, email: str, password: str) -> bool:
    hashed = await directory.get_password_hash(email)
    if hashed is None:
        return False
    return verify_password(password, hashed)
