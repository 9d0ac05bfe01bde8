import threading
from datetime import datetime, timezone

import pytest

from respcache.stats import CacheMetrics, CacheStats


def test_empty_metrics_have_zero_rates():
    stats = CacheMetrics().get_stats()
    assert stats.total_request == 0
    assert stats.hit_rate == 0.0
    assert stats.l1_hit_rate == 0.0
    assert stats.l2_hit_rate == 0.0


def test_counts_and_hit_rate():
    metrics = CacheMetrics()
    metrics.increment_l1_hit()
    metrics.increment_l1_hit()
    metrics.increment_l2_hit()
    metrics.increment_miss()
    stats = metrics.get_stats()
    assert stats.l1_hits == 2
    assert stats.l2_hits == 1
    assert stats.total_miss == 1
    assert stats.total_request == 4
    assert stats.hit_rate == 75.0


def test_rates_are_consistent():
    metrics = CacheMetrics()
    for _ in range(3):
        metrics.increment_l1_hit()
    for _ in range(5):
        metrics.increment_l2_hit()
    for _ in range(7):
        metrics.increment_miss()
    stats = metrics.get_stats()
    assert stats.total_request == stats.l1_hits + stats.l2_hits + stats.total_miss
    assert stats.hit_rate == pytest.approx(stats.l1_hit_rate + stats.l2_hit_rate)
    assert 0.0 <= stats.hit_rate <= 100.0


def test_reset_clears_counters():
    metrics = CacheMetrics()
    metrics.increment_l1_hit()
    metrics.increment_miss()
    metrics.reset()
    stats = metrics.get_stats()
    assert (stats.l1_hits, stats.l2_hits, stats.total_miss, stats.total_request) == (0, 0, 0, 0)


def test_last_update_is_current():
    before = datetime.now(timezone.utc)
    stats = CacheMetrics().get_stats()
    after = datetime.now(timezone.utc)
    assert before <= stats.last_update <= after


def test_concurrent_increments_are_counted():
    metrics = CacheMetrics()
    threads_count, per_thread = 8, 500

    def work():
        for _ in range(per_thread):
            metrics.increment_l1_hit()
            metrics.increment_miss()

    threads = [threading.Thread(target=work) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    stats = metrics.get_stats()
    assert stats.l1_hits == threads_count * per_thread
    assert stats.total_miss == threads_count * per_thread
    assert stats.total_request == 2 * threads_count * per_thread


def test_to_dict_uses_json_names():
    stats = CacheStats(l1_hits=2, l2_hits=1, total_miss=1, total_request=4)
    document = stats.to_dict()
    assert document["l1Hits"] == 2
    assert document["l2Hits"] == 1
    assert document["totalMiss"] == 1
    assert document["totalRequest"] == 4
    assert set(document) == {
        "l1Hits", "l2Hits", "totalMiss", "totalRequest", "hitRate",
        "l1HitRate", "l2HitRate", "l1Size", "l2Size", "lastUpdate",
    }