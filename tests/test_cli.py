import cli


class _Resp:
    ok = True

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


def test_trigger_calls_redeploy_endpoint(monkeypatch, capsys):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return _Resp({"message": "redeploy service shop triggered"})

    monkeypatch.setattr(cli.requests, "get", fake_get)
    rc = cli.main(["--api", "http://h:8080/", "--secret", "s", "trigger", "--service", "shop", "--haproxy", "lb"])

    assert rc == 0
    assert calls == [("http://h:8080/redeploy/", {"service": "shop", "haproxy": "lb", "secret": "s"})]
    assert "triggered" in capsys.readouterr().out


def test_events_passes_limit(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return _Resp([])

    monkeypatch.setattr(cli.requests, "get", fake_get)
    assert cli.main(["--secret", "s", "events", "--limit", "5"]) == 0
    assert calls == [("http://localhost:8080/redeploy/events/", {"limit": 5, "secret": "s"})]


def test_status_of_one_rollout(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append(url)
        return _Resp({"id": "r7"})

    monkeypatch.setattr(cli.requests, "get", fake_get)
    assert cli.main(["--secret", "s", "status"]) == 0
    assert cli.main(["--secret", "s", "status", "--id", "r7"]) == 0
    assert calls == ["http://localhost:8080/redeploy/status/", "http://localhost:8080/redeploy/status/r7"]
