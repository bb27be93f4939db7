from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Citus Cluster Operator CLI")
    p.add_argument("--api", default="http://localhost:8080", help="Operator probe API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("health", help="Show liveness state")
    sub.add_parser("ready", help="Show readiness; exit 1 when not ready")

    s_ev = sub.add_parser("events", help="Show recent operator events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    try:
        if args.cmd == "health":
            r = requests.get(f"{base}/healthz", timeout=10)
            _print(r.json())
            return 0 if r.ok else 1

        if args.cmd == "ready":
            r = requests.get(f"{base}/readyz", timeout=10)
            _print(r.json())
            return 0 if r.ok else 1

        if args.cmd == "events":
            r = requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10)
            _print(r.json())
            return 0 if r.ok else 1
    except requests.RequestException as e:
        print(f"error: cannot reach {base}: {e}", file=sys.stderr)
        return 2

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
