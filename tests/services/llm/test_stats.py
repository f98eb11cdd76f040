import pytest

from storyscope.services.llm.stats import (
    HealthStatus,
    ProviderConnectivity,
    ProviderStats,
    classify_health,
)


def test_running_mean_only_moves_on_success():
    stats = ProviderStats()

    stats.record_request()
    stats.record_success(100.0)
    stats.record_request()
    stats.record_failure()
    stats.record_request()
    stats.record_success(300.0)

    assert stats.requests == 3
    assert stats.successes == 2
    assert stats.failures == 1
    assert stats.avg_response_time_ms == pytest.approx(200.0)


def test_success_rate_formatting():
    stats = ProviderStats(requests=3, successes=2, failures=1)

    assert stats.success_rate == pytest.approx(66.6666, rel=1e-3)
    assert stats.to_dict()["success_rate"] == "66.67%"


def test_success_rate_is_zero_without_requests():
    assert ProviderStats().success_rate == 0.0
    assert ProviderStats().to_dict()["success_rate"] == "0.00%"


def test_reset_clears_everything():
    stats = ProviderStats(requests=4, successes=3, failures=1, avg_response_time_ms=12.5)

    stats.reset()

    assert stats == ProviderStats()


def test_classify_health_rounds_latency():
    stats = ProviderStats(
        requests=20, successes=18, failures=2, avg_response_time_ms=123.6
    )

    health = classify_health(stats)

    assert health.status is HealthStatus.HEALTHY
    assert health.to_dict() == {
        "status": "healthy",
        "success_rate": "90.00%",
        "avg_response_time_ms": 124,
        "total_requests": 20,
    }


@pytest.mark.parametrize(("average", "expected"), [(2.5, 3), (0.5, 1), (124.5, 125), (3.4, 3)])
def test_classify_health_rounds_half_latency_up(average, expected):
    stats = ProviderStats(requests=1, successes=1, avg_response_time_ms=average)

    assert classify_health(stats).avg_response_time_ms == expected


def test_health_boundary_at_fifty_percent_is_degraded():
    stats = ProviderStats(requests=2, successes=1, failures=1)

    assert classify_health(stats).status is HealthStatus.DEGRADED


def test_connectivity_to_dict():
    result = ProviderConnectivity(available=False, error="timeout")

    assert result.to_dict() == {
        "available": False,
        "response_time_ms": None,
        "error": "timeout",
    }
