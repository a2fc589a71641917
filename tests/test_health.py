import httpx
import pytest

from fakes import make_container, mock_http
from seqredeploy.errors import NotFound, Timeout, UnsupportedCheck
from seqredeploy.health import await_healthy, check_url, parse_http_check
from seqredeploy.models import Container


@pytest.fixture
def container():
    return make_container("c1", "svc-web", "web-1")


def _statuses(*codes):
    it = iter(codes)
    last = codes[-1]
    return lambda host: next(it, last)


def test_succeeds_after_k_failures(container, clock):
    client, seen = mock_http(_statuses(500, 500, 500, 200))
    attempts = await_healthy("/health", container, timeout_s=600, interval_s=5, client=client,
                             sleep=clock.sleep, clock=clock)
    assert attempts == 4
    assert len(seen) == 4
    assert clock.sleeps == [5, 5, 5]
    assert clock.now >= 3 * 5


def test_any_2xx_is_ready(container, clock):
    client, _ = mock_http(_statuses(204))
    assert await_healthy("/health", container, client=client, sleep=clock.sleep, clock=clock) == 1
    assert clock.sleeps == []


def test_always_failing_times_out(container, clock):
    client, seen = mock_http(_statuses(500))
    with pytest.raises(Timeout, match="timeout calling http://web-1:8080/health"):
        await_healthy("/health", container, timeout_s=30, interval_s=5, client=client,
                      sleep=clock.sleep, clock=clock)
    assert clock.now >= 30
    assert len(seen) == 7


def test_transport_errors_count_as_not_ready(container, clock):
    answers = iter([httpx.ConnectError("refused"), httpx.ReadTimeout("slow"), 200])
    client, seen = mock_http(lambda host: next(answers))
    assert await_healthy("/health", container, client=client, sleep=clock.sleep, clock=clock) == 3
    assert clock.sleeps == [5, 5]


def test_transport_errors_also_time_out(container, clock):
    client, _ = mock_http(lambda host: httpx.ConnectError("refused"))
    with pytest.raises(Timeout):
        await_healthy("/health", container, timeout_s=10, interval_s=5, client=client,
                      sleep=clock.sleep, clock=clock)


def test_zero_budget_still_checks_once(container, clock):
    client, seen = mock_http(_statuses(200))
    assert await_healthy("/health", container, timeout_s=0, client=client, sleep=clock.sleep, clock=clock) == 1

    client, seen = mock_http(_statuses(503))
    with pytest.raises(Timeout):
        await_healthy("/health", container, timeout_s=0, client=client, sleep=clock.sleep, clock=clock)
    assert len(seen) == 1
    assert clock.sleeps == []


def test_parse_http_check(container):
    assert parse_http_check("GET /health", container) == "/health"
    assert parse_http_check("GET   /ready?deep=1", container) == "/ready?deep=1"
    for bad in ("POST /health", "GET", "", "TCP 8080"):
        with pytest.raises(UnsupportedCheck):
            parse_http_check(bad, container)
    with pytest.raises(UnsupportedCheck):
        parse_http_check(None, container)


def test_check_url_prefers_private_port_without_override():
    c = Container(id="c1", name="web-1", service_id="web", private_ip="172.18.0.4", ports=(32768,), private_port=80)
    assert check_url("/health", c) == "http://172.18.0.4:80/health"
    assert check_url("health", c, host_ip="10.1.2.3") == "http://10.1.2.3:32768/health"


def test_check_url_needs_address_and_port():
    with pytest.raises(NotFound):
        check_url("/health", Container(id="c1", name="web-1", service_id="web", ports=(80,)))
    with pytest.raises(NotFound):
        check_url("/health", Container(id="c1", name="web-1", service_id="web", private_ip="10.0.0.1"))
