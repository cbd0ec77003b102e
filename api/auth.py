"""
Bearer token authentication and rate limiting for the FastAPI API.

Tokens are stored hashed; a valid token resolves into the acting user that
the catalog services check ownership against.
"""

import hashlib
import secrets
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_catalog_database
from catalog.models import ActingUser

logger = structlog.get_logger(__name__)

# Missing credentials are reported as 401 by require_bearer_token
security = HTTPBearer(auto_error=False)


class AccessTokenManager:
    """Issues, resolves and revokes access tokens."""

    @staticmethod
    def generate_token() -> str:
        """Generate a new access token."""
        return f"bk_{secrets.token_urlsafe(32)}"

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    async def issue_token(database, user_id: str, expires_hours: Optional[int] = None) -> Dict:
        """
        Issue a token for an existing user.

        Args:
            database: Catalog database
            user_id: Id of the user the token acts for
            expires_hours: Hours until expiration (None for no expiration)

        Returns:
            Dictionary with the plain token and its metadata

        Raises:
            ValueError: If the user does not exist
        """
        user = await database.get_user(user_id)
        if user is None:
            raise ValueError(f"User '{user_id}' not found")

        token = AccessTokenManager.generate_token()
        expires_at = None
        if expires_hours:
            expires_at = datetime.utcnow() + timedelta(hours=expires_hours)

        await database.insert_token(AccessTokenManager.hash_token(token), user["id"], expires_at)
        logger.info("Access token issued", user_id=user["id"], expires_at=expires_at)

        return {
            "token": token,
            "user_id": user["id"],
            "name": user["name"],
            "expires_at": expires_at
        }

    @staticmethod
    async def resolve_token(database, token: str) -> Optional[ActingUser]:
        """
        Resolve a token into the acting user.

        Returns:
            ActingUser if the token is active, unexpired and its user exists, None otherwise
        """
        record = await database.find_token(AccessTokenManager.hash_token(token))
        if record is None or not record.get("is_active", False):
            return None

        expires_at = record.get("expires_at")
        if expires_at and datetime.utcnow() > expires_at:
            return None

        user = await database.get_user(record["user_id"])
        if user is None:
            return None

        return ActingUser(id=user["id"], name=user["name"])

    @staticmethod
    async def revoke_token(database, token: str) -> bool:
        revoked = await database.deactivate_token(AccessTokenManager.hash_token(token))
        if revoked:
            logger.info("Access token revoked", token=token[:10] + "...")
        return revoked


class RateLimiter:
    """Sliding-window request limiter keyed by client address."""

    def __init__(self, rate_limit: int = 100, window_seconds: int = 900):
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.requests: Dict[str, List[float]] = {}

    def _prune(self, client_id: str, current_time: float) -> List[float]:
        recent = [
            req_time for req_time in self.requests.get(client_id, [])
            if current_time - req_time < self.window_seconds
        ]
        self.requests[client_id] = recent
        return recent

    def check_rate_limit(self, client_id: str) -> bool:
        """
        Record a request and check it against the limit.

        Returns:
            True if within limit, False if exceeded
        """
        current_time = time.time()
        recent = self._prune(client_id, current_time)

        if len(recent) < self.rate_limit:
            recent.append(current_time)
            return True

        return False

    def get_rate_limit_info(self, client_id: str) -> Dict:
        current_time = time.time()
        recent = self._prune(client_id, current_time)
        reset_time = (recent[0] if recent else current_time) + self.window_seconds

        return {
            "requests_used": len(recent),
            "requests_remaining": max(0, self.rate_limit - len(recent)),
            "rate_limit": self.rate_limit,
            "reset_time": reset_time
        }

    def reset(self) -> None:
        self.requests.clear()


def get_rate_limit_headers(rate_info: Dict) -> Dict[str, str]:
    """
    Get rate limit headers for response.

    Args:
        rate_info: Output of RateLimiter.get_rate_limit_info

    Returns:
        Dictionary with rate limit headers
    """
    return {
        "X-RateLimit-Limit": str(rate_info['rate_limit']),
        "X-RateLimit-Remaining": str(rate_info['requests_remaining']),
        "X-RateLimit-Reset": str(int(rate_info['reset_time']))
    }


async def require_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Reject requests without a bearer credential before anything else runs."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_acting_user(
    token: str = Depends(require_bearer_token),
    database=Depends(get_catalog_database)
) -> ActingUser:
    """
    Resolve the bearer credential of a request into the acting user.

    Raises:
        HTTPException: 401 if the credential is missing or invalid
    """
    acting_user = await AccessTokenManager.resolve_token(database, token)
    if acting_user is None:
        logger.warning("Invalid access token attempted", token=token[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, token failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return acting_user
