from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("LISTING_HUB_BASE_URL", "http://localhost:8000")
DEFAULT_CRON_SECRET = os.getenv("CRON_SECRET", "")

DEFAULT_TIMEOUT_SECONDS = 120

JOBS = {
    "time-based-listings": "/v1/cron/time-based-listings",
    "orphaned-applications": "/v1/cron/orphaned-applications",
}


def http_post(url: str, cron_secret: str) -> dict[str, Any]:
    req = urllib.request.Request(
        url=url,
        data=b"",
        method="POST",
        headers={"Authorization": f"Bearer {cron_secret}"},
    )
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = ""
        try:
            body = e.read().decode("utf-8")
        except Exception:
            body = ""
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def main() -> int:
    p = argparse.ArgumentParser(description="Trigger listing maintenance jobs on a running listing hub.")
    p.add_argument("job", choices=sorted(JOBS), nargs="?", default="time-based-listings")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--cron-secret", default=DEFAULT_CRON_SECRET)
    args = p.parse_args()

    if not args.cron_secret:
        print("Missing CRON_SECRET (env) or --cron-secret", file=sys.stderr)
        return 2

    endpoint = f"{args.base_url.rstrip('/')}{JOBS[args.job]}"
    resp = http_post(endpoint, args.cron_secret)
    print(json.dumps(resp, indent=2, ensure_ascii=False, default=str))
    if "error" in resp and isinstance(resp["error"], dict):
        return 1
    return 0 if resp.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())
