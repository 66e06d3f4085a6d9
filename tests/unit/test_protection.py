from __future__ import annotations

import threading

import pytest

from meetquery_py.protection import ConcurrencyLimiter


def test_concurrency_limiter_context_manager_tracks_in_flight() -> None:
    limiter = ConcurrencyLimiter(2)
    with limiter.acquire():
        assert limiter.in_flight == 1
        with limiter.acquire():
            assert limiter.in_flight == 2
    assert limiter.in_flight == 0
    assert limiter.peak == 2


def test_concurrency_limiter_releases_on_error() -> None:
    limiter = ConcurrencyLimiter(1)
    with pytest.raises(RuntimeError):
        with limiter.acquire():
            raise RuntimeError("boom")
    assert limiter.in_flight == 0
    with limiter.acquire():
        assert limiter.in_flight == 1


def test_concurrency_limiter_rejects_over_release() -> None:
    limiter = ConcurrencyLimiter(1)
    with pytest.raises(ValueError):
        limiter.release()
    assert limiter.in_flight == 0


def test_concurrency_limiter_peak_never_exceeds_cap_under_contention() -> None:
    limiter = ConcurrencyLimiter(2)

    def hammer() -> None:
        for _ in range(5000):
            with limiter.acquire():
                pass

    threads = [threading.Thread(target=hammer) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert limiter.peak <= 2
    assert limiter.in_flight == 0


@pytest.mark.parametrize("bad", [0, -1, 1.5, True])
def test_concurrency_limiter_validates_size(bad: object) -> None:
    with pytest.raises(ValueError):
        ConcurrencyLimiter(bad)  # type: ignore[arg-type]
