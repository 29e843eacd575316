"""Ping Redis and print the size of each match-store key family."""

import asyncio
import os

import redis.asyncio as redis
from dotenv import load_dotenv

FAMILIES = ("prefidx:item:*", "favorites:*", "profile:*", "matches:*", "blocks:*", "cooldown:*")


async def check_redis():
    load_dotenv()
    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    print(f"Connecting to {url}")
    client = redis.from_url(url, decode_responses=True)
    try:
        await client.ping()
        print("Ping successful!")
        for pattern in FAMILIES:
            count = 0
            async for _ in client.scan_iter(match=pattern, count=500):
                count += 1
            print(f"  {pattern:<16} {count}")
        print(f"  x:matches.events {await client.xlen('x:matches.events')}")
    except redis.RedisError as e:
        print(f"Failed to connect: {e}")
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(check_redis())
