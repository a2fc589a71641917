from __future__ import annotations

import argparse
import json
import os
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _run_local_rollout(service: str, haproxy: str) -> int:
    # Imported lazily so the remote commands work without docker installed.
    from seqredeploy.errors import RedeployError
    from seqredeploy.journal import setup_logging
    from seqredeploy.rollouts import RolloutOrchestrator
    from seqredeploy.cluster import DockerCluster

    setup_logging()
    try:
        st = RolloutOrchestrator(DockerCluster()).rollout(service, haproxy)
    except RedeployError as e:
        print(f"rollout failed: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    _print(vars(st))
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Sequential Redeploy CLI")
    p.add_argument("--api", default="http://localhost:8080", help="API base URL")
    p.add_argument("--secret", default=os.getenv("SEQREDEPLOY_SECRET"), help="Shared secret (default: $SEQREDEPLOY_SECRET)")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_trig = sub.add_parser("trigger", help="Trigger a redeploy via the API")
    s_trig.add_argument("--service", required=True)
    s_trig.add_argument("--haproxy", required=True, help="Gateway service name")

    sub.add_parser("health", help="Round-trip the cluster API through the server")
    s_status = sub.add_parser("status", help="Show coalescing flags and rollouts")
    s_status.add_argument("--id", dest="rollout_id", help="Show a single rollout")

    s_ev = sub.add_parser("events", help="Show journal entries")
    s_ev.add_argument("--limit", type=int, default=20)

    s_roll = sub.add_parser("rollout", help="Run one rollout synchronously against the local docker daemon")
    s_roll.add_argument("--service", required=True)
    s_roll.add_argument("--haproxy", required=True, help="Gateway service name")

    args = p.parse_args(argv)

    if args.cmd == "rollout":
        return _run_local_rollout(args.service, args.haproxy)

    base = args.api.rstrip("/")
    auth = {"secret": args.secret or ""}

    if args.cmd == "trigger":
        params = {"service": args.service, "haproxy": args.haproxy, **auth}
        r = requests.get(f"{base}/redeploy/", params=params, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "health":
        r = requests.get(f"{base}/redeploy/health/", params=auth, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "status":
        path = f"/redeploy/status/{args.rollout_id}" if args.rollout_id else "/redeploy/status/"
        r = requests.get(f"{base}{path}", params=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        r = requests.get(f"{base}/redeploy/events/", params={"limit": args.limit, **auth}, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
