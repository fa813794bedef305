# tests/test_concurrency.py

"""
Requests waiting on the document store must not hold up one another.
"""

import asyncio
import threading

import httpx

from backend.app.config import get_store
from tests.fakes import FakeStore, auth

CONCURRENT = 4


class RendezvousStore(FakeStore):
    """The first few reads block until that many readers are waiting at once."""

    def __init__(self, parties: int, timeout: float = 5.0):
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=timeout)
        self._remaining = parties
        self._lock = threading.Lock()
        self.threads = set()

    def get(self, path):
        with self._lock:
            wait = self._remaining > 0
            self._remaining -= 1
        if wait:
            self.threads.add(threading.get_ident())
            self._barrier.wait()
        return super().get(path)


def test_concurrent_overview_reads_overlap(app):
    store = RendezvousStore(CONCURRENT)
    store.put_activity("act1", by_uid={"u1": "Editor"})
    app.dependency_overrides[get_store] = lambda: store

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            responses = await asyncio.gather(*[
                http.get("/activities/act1/overview", headers=auth("u1")) for _ in range(CONCURRENT)
            ])
        return [r.status_code for r in responses], threading.get_ident()

    codes, loop_thread = asyncio.run(scenario())

    assert codes == [200] * CONCURRENT
    assert not store._barrier.broken
    assert loop_thread not in store.threads
