#!/usr/bin/env python3
from __future__ import annotations

import json
import os
import sys

from urllib.request import Request, urlopen
from urllib.error import URLError


def main() -> int:
    base_url = os.getenv("ARXIVRAG_API_URL", "http://localhost:8000").rstrip("/")
    try:
        with urlopen(f"{base_url}/healthz", timeout=5) as r:
            health = json.loads(r.read().decode("utf-8"))
        print("/healthz:", health)
        if health.get("missing_settings"):
            print(f"Missing settings: {', '.join(health['missing_settings'])}", file=sys.stderr)
            return 1
        preflight = Request(f"{base_url}/chat", method="OPTIONS")
        with urlopen(preflight, timeout=5) as r2:
            origin = r2.headers.get("Access-Control-Allow-Origin")
            print("OPTIONS /chat:", r2.status, r2.read().decode("utf-8"), f"(origin={origin})")
    except (URLError, ValueError) as exc:
        print(f"Smoke check failed: {exc}", file=sys.stderr)
        return 1
    print("Smoke check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
