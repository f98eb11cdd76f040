"""Per-provider request statistics and health classification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

HEALTHY_THRESHOLD = 90.0
DEGRADED_THRESHOLD = 50.0


@dataclass(slots=True)
class ProviderStats:
    """Rolling counters for one provider; the mean only moves on success."""

    requests: int = 0
    successes: int = 0
    failures: int = 0
    avg_response_time_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.successes / self.requests * 100

    def record_request(self) -> None:
        self.requests += 1

    def record_success(self, elapsed_ms: float) -> None:
        self.successes += 1
        self.avg_response_time_ms = (
            self.avg_response_time_ms * (self.successes - 1) + elapsed_ms
        ) / self.successes

    def record_failure(self) -> None:
        self.failures += 1

    def reset(self) -> None:
        self.requests = 0
        self.successes = 0
        self.failures = 0
        self.avg_response_time_ms = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requests": self.requests,
            "successes": self.successes,
            "failures": self.failures,
            "avg_response_time_ms": self.avg_response_time_ms,
            "success_rate": f"{self.success_rate:.2f}%",
        }


class HealthStatus(str, Enum):
    UNTESTED = "untested"
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(frozen=True, slots=True)
class ProviderHealth:
    status: HealthStatus
    success_rate: float
    avg_response_time_ms: int
    total_requests: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "success_rate": f"{self.success_rate:.2f}%",
            "avg_response_time_ms": self.avg_response_time_ms,
            "total_requests": self.total_requests,
        }


@dataclass(frozen=True, slots=True)
class ProviderConnectivity:
    """Result of a single connectivity probe."""

    available: bool
    response_time_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
        }


def classify_health(stats: ProviderStats) -> ProviderHealth:
    """Derive a health verdict from the current counters."""
    rate = stats.success_rate
    if stats.requests == 0:
        status = HealthStatus.UNTESTED
    elif rate >= HEALTHY_THRESHOLD:
        status = HealthStatus.HEALTHY
    elif rate >= DEGRADED_THRESHOLD:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.UNHEALTHY
    return ProviderHealth(
        status=status,
        success_rate=rate,
        avg_response_time_ms=int(stats.avg_response_time_ms + 0.5),
        total_requests=stats.requests,
    )
