import pytest
from fastapi.testclient import TestClient

import main
from fakes import FakeCluster
from seqredeploy.journal import log_event
from seqredeploy.models import Service
from seqredeploy.runtime import RolloutStatus, RuntimeState
from seqredeploy.settings import Settings


class RecordingCoalescer:
    def __init__(self):
        self.calls = []

    def trigger(self, service, gateway):
        self.calls.append((service, gateway))


@pytest.fixture
def api(monkeypatch):
    coalescer = RecordingCoalescer()
    cluster = FakeCluster([Service(id="a", name="shop"), Service(id="b", name="haproxy")], [])
    runtime = RuntimeState()
    monkeypatch.setattr(main, "settings", Settings(secret="s3cret"))
    monkeypatch.setattr(main, "coalescer", coalescer)
    monkeypatch.setattr(main, "cluster", cluster)
    monkeypatch.setattr(main, "runtime", runtime)
    with TestClient(main.app) as client:
        yield client, coalescer, cluster, runtime


def test_trigger_acknowledges_and_hands_off(api):
    client, coalescer, _, _ = api
    r = client.get("/redeploy/", params={"service": "shop", "haproxy": "haproxy", "secret": "s3cret"})
    assert r.status_code == 200
    assert r.json()["message"] == "redeploy service shop triggered"
    assert coalescer.calls == [("shop", "haproxy")]


def test_trigger_rejects_bad_secret(api):
    client, coalescer, _, _ = api
    r = client.get("/redeploy/", params={"service": "shop", "haproxy": "haproxy", "secret": "nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "bad secret"
    assert coalescer.calls == []


def test_missing_secret_env_rejects_everything(api, monkeypatch):
    client, coalescer, _, _ = api
    monkeypatch.setattr(main, "settings", Settings(secret=None))
    r = client.get("/redeploy/", params={"service": "shop", "haproxy": "haproxy", "secret": "s3cret"})
    assert r.status_code == 401
    assert r.json()["detail"] == "missing env SEQREDEPLOY_SECRET"
    assert coalescer.calls == []


@pytest.mark.parametrize("missing", ["service", "haproxy", "secret"])
def test_trigger_requires_all_parameters(api, missing):
    client, coalescer, _, _ = api
    params = {"service": "shop", "haproxy": "haproxy", "secret": "s3cret"}
    params.pop(missing)
    r = client.get("/redeploy/", params=params)
    assert r.status_code == 422
    assert coalescer.calls == []


def test_health_endpoint_counts_services(api):
    client, _, _, _ = api
    r = client.get("/redeploy/health/", params={"secret": "s3cret"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "services": 2}


def test_health_endpoint_reports_cluster_failure(api):
    client, _, cluster, _ = api
    cluster.fail_list = True
    r = client.get("/redeploy/health/", params={"secret": "s3cret"})
    assert r.status_code == 500
    assert r.json()["detail"] == "cluster problem"


def test_status_shows_flags_and_rollouts(api):
    client, _, _, runtime = api
    runtime.coordinator.claim_or_request_rerun()
    runtime.coordinator.claim_or_request_rerun()
    runtime.upsert_rollout(RolloutStatus(id="r1", service="shop", gateway="haproxy", state="running", message="x"))

    r = client.get("/redeploy/status/", params={"secret": "s3cret"})
    assert r.status_code == 200
    body = r.json()
    assert body["running"] is True
    assert body["rerun_requested"] is True
    assert [x["id"] for x in body["rollouts"]] == ["r1"]


def test_status_of_one_rollout(api):
    client, _, _, runtime = api
    runtime.upsert_rollout(RolloutStatus(id="r7", service="shop", gateway="haproxy", state="done", message="ok",
                                         containers_total=2, containers_done=2))

    r = client.get("/redeploy/status/r7", params={"secret": "s3cret"})
    assert r.status_code == 200
    assert r.json()["state"] == "done"
    assert r.json()["containers_done"] == 2

    r = client.get("/redeploy/status/nope", params={"secret": "s3cret"})
    assert r.status_code == 404

    r = client.get("/redeploy/status/r7", params={"secret": "wrong"})
    assert r.status_code == 401


def test_events_lists_journal(api):
    client, _, _, _ = api
    log_event("INFO", "first", service_name="shop")
    log_event("ERROR", "second", service_name="shop", container="c1")

    r = client.get("/redeploy/events/", params={"secret": "s3cret", "limit": 1})
    assert r.status_code == 200
    (entry,) = r.json()
    assert entry["message"] == "second"
    assert entry["level"] == "ERROR"
    assert entry["container"] == "c1"
