"""Port interface for the shared round-robin cursor store."""

from abc import ABC, abstractmethod


class RoundRobinRepository(ABC):
    @abstractmethod
    async def increment_counter(self, pool_key: str) -> int:
        """Atomically advance the cursor and return the OLD value.

        Implementations hold a row lock (SELECT ... FOR UPDATE) until the
        surrounding transaction commits, so everything read after this call in
        the same transaction is serialized per pool.
        """
        ...
