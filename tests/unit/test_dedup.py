"""Unit tests for RequestDeduplicator."""
import asyncio

import pytest

from pricefeed.core.data.dedup import RequestDeduplicator


class CountingProducer:
    """Producer that blocks until released and counts how often it was started."""

    def __init__(self, value="quote", error: Exception | None = None):
        self.value = value
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()

    async def __call__(self):
        self.calls += 1
        await self.release.wait()
        if self.error:
            raise self.error
        return self.value


class TestRequestDeduplicator:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self):
        dedup = RequestDeduplicator()
        producer = CountingProducer()

        waiters = [asyncio.create_task(dedup.run("yahoo:AAPL", producer)) for _ in range(5)]
        await asyncio.sleep(0)
        assert dedup.pending("yahoo:AAPL")
        assert len(dedup) == 1

        producer.release.set()
        results = await asyncio.gather(*waiters)

        assert results == ["quote"] * 5
        assert producer.calls == 1
        assert not dedup.pending("yahoo:AAPL")

    @pytest.mark.asyncio
    async def test_distinct_keys_fetch_independently(self):
        dedup = RequestDeduplicator()
        a, b = CountingProducer("a"), CountingProducer("b")
        a.release.set()
        b.release.set()

        results = await asyncio.gather(dedup.run("k1", a), dedup.run("k2", b))
        assert results == ["a", "b"]
        assert a.calls == 1 and b.calls == 1

    @pytest.mark.asyncio
    async def test_error_reaches_every_waiter_and_clears_entry(self):
        dedup = RequestDeduplicator()
        producer = CountingProducer(error=ConnectionError("upstream down"))

        waiters = [asyncio.create_task(dedup.run("k", producer)) for _ in range(3)]
        await asyncio.sleep(0)
        producer.release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, ConnectionError) for r in results)
        assert producer.calls == 1
        assert len(dedup) == 0

    @pytest.mark.asyncio
    async def test_completed_key_fetches_again(self):
        dedup = RequestDeduplicator()
        producer = CountingProducer()
        producer.release.set()

        await dedup.run("k", producer)
        await dedup.run("k", producer)
        assert producer.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_fetch(self):
        dedup = RequestDeduplicator()
        producer = CountingProducer()

        first = asyncio.create_task(dedup.run("k", producer))
        second = asyncio.create_task(dedup.run("k", producer))
        await asyncio.sleep(0)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        assert dedup.pending("k")

        producer.release.set()
        assert await second == "quote"
        assert producer.calls == 1
        assert not dedup.pending("k")
