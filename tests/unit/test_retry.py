import pytest

from bulkflow.utils import retry
from bulkflow.utils.retry import compute_backoff


def test_compute_backoff_growth():
    first = compute_backoff(1, base=2, jitter=0)
    second = compute_backoff(2, base=2, jitter=0)
    assert second > first
    assert first == 2


@pytest.mark.asyncio
async def test_schedule_retry_sleeps_for_backoff(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    await retry.schedule_retry(3, base=2, jitter=0)
    assert delays == [8]
