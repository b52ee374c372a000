"""Per-client locks shared by every service that writes a client's accounting."""

import asyncio
import weakref


class ClientLocks:
    """
    One asyncio.Lock per client id, handed out to whoever currently holds or
    awaits it. Entries vanish once no coroutine references the lock, so the
    registry stays as large as the set of clients with writes in flight.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, client_id: str) -> asyncio.Lock:
        lock = self._locks.get(client_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[client_id] = lock
        return lock

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._locks

    def __len__(self) -> int:
        return len(self._locks)
