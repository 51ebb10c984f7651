"""bcrypt-backed secret hasher."""

from __future__ import annotations

import asyncio

from api.middleware.auth import hash_password, verify_password


class BcryptHasher:
    """Runs bcrypt in a worker thread; ``checkpw`` compares in constant time."""

    async def verify(self, plaintext: str, hashed: str) -> bool:
        return await asyncio.to_thread(verify_password, plaintext, hashed)

    async def hash(self, plaintext: str, work_factor: int) -> str:
        return await asyncio.to_thread(hash_password, plaintext, work_factor)
