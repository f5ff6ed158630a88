"""
LMS Quiz Engine
Dependency injection: identity, roles, rate limiting and caching
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

import jwt
import redis.asyncio as redis
from redis.exceptions import RedisError

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .exceptions import AuthenticationException, AuthorizationException
from ..config import get_settings

# Configure logging
logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

# Redis connection
_redis_client: Optional[redis.Redis] = None
_redis_retry_at: float = 0.0  # monotonic time before which no reconnect is tried

# Roles allowed to change the quiz catalog
CATALOG_ROLES = ("admin", "instructor")


async def get_redis_client() -> Optional[redis.Redis]:
    """Get Redis client instance, or None when Redis is disabled or unreachable"""
    global _redis_client, _redis_retry_at

    settings = get_settings()
    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if time.monotonic() < _redis_retry_at:
            return None

        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                health_check_interval=30
            )
            # Test connection
            await _redis_client.ping()
            logger.info("✅ Redis connection established")
        except (RedisError, OSError) as e:
            logger.warning(
                f"⚠️ Redis connection failed: {e}; "
                f"retrying in {settings.REDIS_RETRY_INTERVAL}s"
            )
            _redis_client = None
            _redis_retry_at = time.monotonic() + settings.REDIS_RETRY_INTERVAL

    return _redis_client


@dataclass
class CurrentUser:
    """Identity asserted by the bearer token"""
    id: int
    roles: List[str] = field(default_factory=list)

    def has_any_role(self, roles) -> bool:
        return any(role in self.roles for role in roles)


async def verify_jwt_token(token: str) -> Dict[str, Any]:
    """Verify and decode JWT token"""
    settings = get_settings()

    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationException("Token has expired")
    except jwt.PyJWTError:
        raise AuthenticationException("Invalid token")


async def get_current_user_from_token(token: str) -> CurrentUser:
    payload = await verify_jwt_token(token)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationException("Invalid token payload")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return CurrentUser(id=user_id, roles=[str(role).lower() for role in roles])


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[CurrentUser]:
    """Get current authenticated user (optional)"""

    if not credentials:
        return None

    return await get_current_user_from_token(credentials.credentials)


async def require_authentication(
    current_user: Optional[CurrentUser] = Depends(get_current_user)
) -> CurrentUser:
    """Require user authentication"""

    if not current_user:
        raise AuthenticationException("Authentication required")

    return current_user


def require_roles(*allowed_roles: str):
    """Factory function to create role-based dependencies"""

    async def check_role(current_user: CurrentUser = Depends(require_authentication)) -> CurrentUser:
        if not current_user.has_any_role(allowed_roles):
            raise AuthorizationException(
                f"Access denied. Required roles: {list(allowed_roles)}",
                required_roles=allowed_roles
            )
        return current_user

    return check_role


# Pre-built role dependencies
require_catalog_editor = require_roles(*CATALOG_ROLES)


class RateLimiter:
    """Fixed-window rate limiting dependency"""

    def __init__(self, requests: int, window: int, scope: str = "global"):
        self.requests = requests
        self.window = window
        self.scope = scope

    async def _key(self, request: Request) -> str:
        client_host = request.client.host if request.client else "unknown"

        if self.scope == "user":
            auth_header = request.headers.get("Authorization")
            if auth_header and auth_header.startswith("Bearer "):
                try:
                    user = await get_current_user_from_token(auth_header.split(" ", 1)[1])
                    return f"rate_limit:user:{user.id}:{request.url.path}"
                except AuthenticationException:
                    pass
            return f"rate_limit:ip:{client_host}:{request.url.path}"

        if self.scope == "ip":
            return f"rate_limit:ip:{client_host}"

        return "rate_limit:global"

    async def __call__(self, request: Request) -> bool:
        redis_client = await get_redis_client()

        if not redis_client:
            # If Redis is not available, allow all requests
            return True

        key = await self._key(request)

        try:
            current_requests = await redis_client.incr(key)
            if current_requests == 1:
                await redis_client.expire(key, self.window)
        except RedisError as e:
            logger.warning(f"Rate limit check failed for {key}: {e}")
            return True

        if current_requests > self.requests:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded. Please try again later."
            )

        return True


def submit_rate_limit() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(requests=settings.SUBMIT_RATE_LIMIT_PER_MINUTE, window=60, scope="user")


class CacheManager:
    """Redis-backed JSON cache; every call is a no-op without Redis"""

    def __init__(self, ttl: int = 300, prefix: str = "cache"):
        self.ttl = ttl
        self.prefix = prefix

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        redis_client = await get_redis_client()

        if not redis_client:
            return None

        try:
            cached_value = await redis_client.get(f"{self.prefix}:{key}")
            return json.loads(cached_value) if cached_value else None
        except (RedisError, ValueError) as e:
            logger.warning(f"Cache get failed for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any) -> bool:
        """Set value in cache"""
        redis_client = await get_redis_client()

        if not redis_client:
            return False

        try:
            await redis_client.setex(f"{self.prefix}:{key}", self.ttl, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"Cache set failed for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete value from cache"""
        redis_client = await get_redis_client()

        if not redis_client:
            return False

        try:
            await redis_client.delete(f"{self.prefix}:{key}")
            return True
        except RedisError as e:
            logger.warning(f"Cache delete failed for key {key}: {e}")
            return False


def get_leaderboard_cache() -> CacheManager:
    return CacheManager(ttl=get_settings().CACHE_TTL, prefix="cache:leaderboard")


# Cleanup function
async def cleanup_dependencies():
    """Cleanup dependency resources"""
    global _redis_client, _redis_retry_at

    _redis_retry_at = 0.0
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("✅ Redis connection closed")


# Export main dependencies
__all__ = [
    # Authentication
    "CurrentUser",
    "verify_jwt_token",
    "get_current_user",
    "require_authentication",
    "require_roles",
    "require_catalog_editor",

    # Rate limiting
    "RateLimiter",
    "submit_rate_limit",

    # Caching
    "CacheManager",
    "get_leaderboard_cache",

    # Utilities
    "get_redis_client",
    "cleanup_dependencies"
]
