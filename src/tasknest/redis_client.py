"""Redis client lifecycle. The client lives on ``app.state.redis``."""

import redis.asyncio as redis
from fastapi import Request


def create_redis(url: str) -> redis.Redis:
    """Build a pooled Redis client. No connection is opened until first use."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the client's connection pool."""
    if client is not None:
        await client.aclose()


def get_redis(request: Request) -> redis.Redis:
    """FastAPI dependency returning the app's Redis client."""
    client = getattr(request.app.state, "redis", None)
    if client is None:
        msg = "Redis not initialized"
        raise RuntimeError(msg)
    return client
