"""Protocol definitions for data access."""

from __future__ import annotations

from typing import Protocol

from result import Result

from quotasync.data.errors import NotFound, ReadFailed, WriteFailed


class TierProtocol(Protocol):
    """A storage backend in the persistence fallback chain.

    ``read`` returns ``NotFound`` when the key holds nothing and ``ReadFailed``
    when the tier could not be queried.
    """

    async def read(self, key: str) -> Result[bytes, NotFound | ReadFailed]: ...

    async def write(self, key: str, data: bytes) -> Result[None, WriteFailed]: ...

    async def delete(self, key: str) -> Result[None, WriteFailed]: ...
