"""Token bucket rate limiter backed by Redis.

Throttles request volume per client IP, or per resolved requester account on
identity-gated endpoints, on top of the per-account re-issue rule
enforced by the lifecycle service.
"""

import time

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, Response

from propertyhub.auth.session import Requester, get_requester
from propertyhub.config import settings
from propertyhub.redis import get_redis

# Lua script for atomic token bucket check-and-consume
_TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local bucket = redis.call('HMGET', key, 'tokens', 'last_refill')
local tokens = tonumber(bucket[1])
local last_refill = tonumber(bucket[2])

if tokens == nil then
    tokens = capacity
    last_refill = now
end

local elapsed = now - last_refill
local new_tokens = math.min(capacity, tokens + elapsed * (refill_rate / 60.0))

if new_tokens >= 1 then
    new_tokens = new_tokens - 1
    redis.call('HMSET', key, 'tokens', new_tokens, 'last_refill', now)
    redis.call('EXPIRE', key, 120)
    return {1, math.floor(new_tokens), 0}
else
    local retry_after = 60
    if refill_rate > 0 then
        retry_after = math.ceil((1 - new_tokens) * 60 / refill_rate)
    end
    redis.call('HMSET', key, 'tokens', new_tokens, 'last_refill', now)
    redis.call('EXPIRE', key, 120)
    return {0, 0, retry_after}
end
"""

_RECOVERY_PATHS = ("/forgot-password", "/resend-verification")


def _get_rate_config(method: str, path: str) -> tuple[int, int, str]:
    """Return (capacity, refill_per_min, category) based on endpoint."""
    path = path.rstrip("/")
    if method == "POST" and path.endswith("/login"):
        return (
            settings.rate_limit_login_capacity,
            settings.rate_limit_login_refill_per_min,
            "login",
        )
    if method == "POST" and path.endswith("/register"):
        return (
            settings.rate_limit_signup_capacity,
            settings.rate_limit_signup_refill_per_min,
            "signup",
        )
    if method == "POST" and path.endswith(_RECOVERY_PATHS):
        return (
            settings.rate_limit_recovery_capacity,
            settings.rate_limit_recovery_refill_per_min,
            "recovery",
        )
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        return (
            settings.rate_limit_write_capacity,
            settings.rate_limit_write_refill_per_min,
            "write",
        )
    return (
        settings.rate_limit_read_capacity,
        settings.rate_limit_read_refill_per_min,
        "read",
    )


def _get_client_ip(request: Request) -> str:
    """Extract the client IP.

    X-Forwarded-For is only consulted behind ``rate_limit_trusted_proxy_hops``
    proxies; each appends the address it saw, so the entry that many places
    from the right is the one the outermost trusted proxy recorded. Entries
    further left are client-supplied.
    """
    hops = settings.rate_limit_trusted_proxy_hops
    forwarded_for = request.headers.get("X-Forwarded-For")
    if hops > 0 and forwarded_for:
        chain = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
        if len(chain) >= hops:
            return chain[-hops]
    if request.client is not None:
        return request.client.host
    return "unknown"


async def _consume(
    redis: aioredis.Redis,
    response: Response,
    bucket_key: str,
    capacity: int,
    refill_rate: int,
) -> None:
    result = await redis.eval(
        _TOKEN_BUCKET_SCRIPT, 1, bucket_key, capacity, refill_rate, time.time()
    )
    allowed, remaining, retry_after = int(result[0]), int(result[1]), int(result[2])

    response.headers["X-RateLimit-Limit"] = str(capacity)
    response.headers["X-RateLimit-Remaining"] = str(remaining)

    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )


async def check_rate_limit(
    request: Request,
    response: Response,
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Rate limit dependency for unauthenticated endpoints, bucketed by client IP.

    Client-supplied identity headers are ignored here: an unchecked X-User-Id
    would hand out a fresh bucket per invented value.
    """
    capacity, refill_rate, category = _get_rate_config(request.method.upper(), request.url.path)
    bucket_key = f"ratelimit:ip:{_get_client_ip(request)}:{category}"
    await _consume(redis, response, bucket_key, capacity, refill_rate)


async def rate_limited_requester(
    request: Request,
    response: Response,
    requester: Requester = Depends(get_requester),
    redis: aioredis.Redis = Depends(get_redis),
) -> Requester:
    """Resolve the requester, then rate limit on its stored account id."""
    capacity, refill_rate, category = _get_rate_config(request.method.upper(), request.url.path)
    bucket_key = f"ratelimit:account:{requester.account_id}:{category}"
    await _consume(redis, response, bucket_key, capacity, refill_rate)
    return requester
