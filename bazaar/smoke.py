"""Smoke checks against a running Twania Smart Bazaar API.

Usage::

    python -m bazaar.smoke --base-url http://localhost:5001 --burst 10
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from bazaar.clients.bazaar_api import BazaarApiClient, BazaarApiError
from bazaar.config import get_settings
from bazaar.logging_config import configure_logging

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    detail: str


def check_health(client: BazaarApiClient) -> str:
    data = client.health()
    if not data.get("success"):
        raise BazaarApiError(f"unhealthy: {data}")
    return str(data.get("status", "healthy"))


def check_test_get(client: BazaarApiClient) -> str:
    data = client.test_get()
    if not data.get("success"):
        raise BazaarApiError(f"unexpected body: {data}")
    return str(data.get("message"))


def check_test_post(client: BazaarApiClient) -> str:
    payload = {"source": "smoke"}
    data = client.test_post(payload)
    if data.get("data") != payload:
        raise BazaarApiError(f"payload not echoed: {data.get('data')!r}")
    return str(data.get("message"))


def check_rate_limit(client: BazaarApiClient, burst: int) -> str:
    """Fire ``burst`` requests back to back and expect the limiter to answer 429."""

    statuses = [client.get_status("/api/test") for _ in range(burst)]
    rejected = statuses.count(429)
    if not rejected:
        raise BazaarApiError(f"no 429 in {burst} requests")
    return f"{rejected}/{burst} requests throttled"


def run_checks(client: BazaarApiClient, burst: int = 0) -> List[CheckResult]:
    checks: List[tuple[str, Callable[[], str]]] = [
        ("health", lambda: check_health(client)),
        ("test-get", lambda: check_test_get(client)),
        ("test-post", lambda: check_test_post(client)),
    ]
    if burst > 0:
        checks.append(("rate-limit", lambda: check_rate_limit(client, burst)))

    results: List[CheckResult] = []
    for name, check in checks:
        try:
            detail = check()
        except BazaarApiError as exc:
            LOGGER.error("check failed", extra={"path": name, "detail": str(exc)})
            results.append(CheckResult(name=name, passed=False, detail=str(exc)))
        else:
            LOGGER.info("check passed", extra={"path": name, "detail": detail})
            results.append(CheckResult(name=name, passed=True, detail=detail))
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Smoke test the Twania Smart Bazaar API.")
    parser.add_argument("--base-url", default=None, help="API root, defaults to BAZAAR_API_BASE_URL.")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-request timeout in seconds.")
    parser.add_argument(
        "--burst",
        type=int,
        default=0,
        help="Send this many rapid requests and expect throttling (0 disables).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    base_url = args.base_url or get_settings().api_base_url
    client = BazaarApiClient(base_url, timeout=args.timeout)
    results = run_checks(client, burst=args.burst)
    failed = [result.name for result in results if not result.passed]
    if failed:
        LOGGER.error("smoke checks failed", extra={"detail": ",".join(failed)})
        return 1
    LOGGER.info("all smoke checks passed", extra={"count": len(results)})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
