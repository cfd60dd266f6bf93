from __future__ import annotations

import json
from unittest import mock

import requests

from bazaar import smoke
from bazaar.clients.bazaar_api import BazaarApiClient, BazaarApiError


def make_response(status: int, body=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = b"null" if body is None else json.dumps(body).encode()
    return response


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self._responses = responses
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        path = url.split("5001", 1)[1]
        result = self._responses[(method, path)]
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, url, timeout=None):
        return self.request("GET", url, timeout=timeout)


def healthy_responses():
    return {
        ("GET", "/api/health"): make_response(200, {"success": True, "status": "healthy"}),
        ("GET", "/api/test"): make_response(200, {"success": True, "message": "Test GET endpoint working"}),
        ("POST", "/api/test"): make_response(
            200, {"success": True, "message": "Test POST endpoint working", "data": {"source": "smoke"}}
        ),
    }


def test_all_checks_pass():
    client = BazaarApiClient("http://localhost:5001/", session=FakeSession(healthy_responses()))

    results = smoke.run_checks(client)

    assert [r.name for r in results] == ["health", "test-get", "test-post"]
    assert all(r.passed for r in results)
    assert client.base_url == "http://localhost:5001"


def test_server_error_marks_check_failed():
    responses = healthy_responses()
    responses[("GET", "/api/health")] = make_response(503, {"success": False})
    client = BazaarApiClient("http://localhost:5001", session=FakeSession(responses))

    results = smoke.run_checks(client)

    assert not results[0].passed
    assert "Server error (503)" in results[0].detail
    assert results[1].passed


def test_unreachable_server_raises_api_error():
    responses = {("GET", "/api/health"): requests.ConnectionError("refused")}
    client = BazaarApiClient("http://localhost:5001", session=FakeSession(responses))

    try:
        client.health()
    except BazaarApiError as exc:
        assert "unreachable" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("expected BazaarApiError")


def test_rate_limit_check_counts_throttled_requests():
    client = mock.Mock(spec=BazaarApiClient)
    client.get_status.side_effect = [200] * 5 + [429] * 3

    detail = smoke.check_rate_limit(client, 8)

    assert detail == "3/8 requests throttled"


def test_rate_limit_check_fails_without_throttling():
    client = mock.Mock(spec=BazaarApiClient)
    client.get_status.return_value = 200

    try:
        smoke.check_rate_limit(client, 4)
    except BazaarApiError as exc:
        assert "no 429" in str(exc)
    else:  # pragma: no cover
        raise AssertionError("expected BazaarApiError")


def test_main_exit_codes():
    passing = [smoke.CheckResult("health", True, "healthy")]
    failing = [smoke.CheckResult("health", False, "down")]

    with mock.patch.object(smoke, "run_checks", return_value=passing) as run_checks:
        assert smoke.main(["--base-url", "http://api.example", "--burst", "7"]) == 0
    _, kwargs = run_checks.call_args
    assert kwargs == {"burst": 7}
    assert run_checks.call_args.args[0].base_url == "http://api.example"

    with mock.patch.object(smoke, "run_checks", return_value=failing):
        assert smoke.main(["--base-url", "http://api.example"]) == 1
