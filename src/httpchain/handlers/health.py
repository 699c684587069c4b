"""
=============================================================================
HEALTH CHECK HANDLERS
=============================================================================

Kubernetes-style probes as ordinary route handlers:

    /health         all registered checks, 200 or 503
    /health/live    the process is up (always 200)
    /health/ready   can take traffic: 503 while marked not ready or while
                    any check fails

Responses are JSON with "Cache-Control: no-store". The handlers install
the JSON encoder decorator themselves, so they work with or without
json_body_encoder in the middleware chain.

=============================================================================
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional
import logging
import platform
import time

from ..http.request import Request
from ..http.response import Response
from ..middleware.body_encoder import JSON_CONTENT_TYPE, json_encoder_decorator


logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """
    Outcome of a single named check.

        health.add_check("queue", lambda: HealthStatus(queue.alive(), details={"depth": len(queue)}))
    """

    healthy: bool
    message: str = "OK"
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return "healthy" if self.healthy else "unhealthy"

    def to_dict(self) -> dict:
        report = {"status": self.label, "message": self.message}
        report.update(self.details)
        return report


HealthCheck = Callable[[], HealthStatus]


def _system_info() -> Dict[str, str]:
    return {
        "hostname": platform.node(),
        "platform": platform.system(),
        "python_version": platform.python_version(),
    }


class HealthHandler:
    """
    Probe endpoints backed by a registry of named checks.

        health = HealthHandler()
        health.add_check("queue", queue_check)
        router.get("/health", health.handle)
        router.get("/health/live", health.liveness)
        router.get("/health/ready", health.readiness)

    Args:
        include_details: Report each check under "checks" in /health.
        include_system_info: Report hostname, platform and Python version.
        ready: Initial readiness; toggled by mark_ready()/mark_not_ready().
    """

    def __init__(self, include_details: bool = True, include_system_info: bool = False, ready: bool = True):
        self.include_details = include_details
        self.include_system_info = include_system_info
        self._ready = ready
        self._checks: Dict[str, HealthCheck] = {}
        self._started = time.monotonic()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """Register a check run on every /health and /health/ready request."""
        self._checks[name] = check
        return self

    def mark_ready(self) -> None:
        self._ready = True

    def mark_not_ready(self) -> None:
        self._ready = False

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._started

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def handle(self, req: Request, res: Response) -> None:
        """Run every check; 200 if all pass, 503 otherwise."""
        outcomes = self._evaluate()
        healthy = all(s.healthy for s in outcomes.values())

        report: Dict[str, Any] = {
            "status": "healthy" if healthy else "unhealthy",
            "uptime_seconds": int(self.uptime),
        }
        if outcomes and self.include_details:
            report["checks"] = {name: s.to_dict() for name, s in outcomes.items()}
        if self.include_system_info:
            report["system"] = _system_info()

        self._respond(res, HTTPStatus.OK if healthy else HTTPStatus.SERVICE_UNAVAILABLE, report)

    def liveness(self, req: Request, res: Response) -> None:
        """The process is running. Never checks dependencies."""
        self._respond(res, HTTPStatus.OK, {"status": "alive"})

    def readiness(self, req: Request, res: Response) -> None:
        report: Dict[str, Any] = {"status": "ready"}
        if self._ready:
            failed = next(((n, s) for n, s in self._evaluate().items() if not s.healthy), None)
            if failed is not None:
                report = {"status": "not ready", "reason": f"Check '{failed[0]}' failed: {failed[1].message}"}
        else:
            report = {"status": "not ready"}

        code = HTTPStatus.OK if report["status"] == "ready" else HTTPStatus.SERVICE_UNAVAILABLE
        self._respond(res, code, report)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _evaluate(self) -> Dict[str, HealthStatus]:
        outcomes = {}
        for name, check in self._checks.items():
            try:
                outcomes[name] = check()
            except Exception as e:
                logger.warning(f"Health check {name!r} raised: {e}")
                outcomes[name] = HealthStatus(healthy=False, message=str(e))
        return outcomes

    @staticmethod
    def _respond(res: Response, status: int, data: Optional[dict]) -> None:
        res.use_encoder_decorator(json_encoder_decorator)
        res.set_header("Content-Type", JSON_CONTENT_TYPE)
        res.set_header("Cache-Control", "no-store")
        res.write_status(status)
        res.encode(data)
