#!/usr/bin/env python3
"""Sign a mention event file like the platform does, and optionally deliver it.

Usage: python3 scripts/sign_event.py <event.json> [webhook_url]

The key is looked up in COMMON_WEBHOOK_SIGNING_KEYS by the event's community_id.
"""
import json
import os
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

from mention_agent.config import DEFAULT_SIGNATURE_HEADER
from mention_agent.signature import signature_header


def main(argv) -> int:
    if len(argv) not in (2, 3):
        raise SystemExit("Usage: python3 scripts/sign_event.py <event.json> [webhook_url]")

    load_dotenv()
    raw = Path(argv[1]).read_bytes()
    event = json.loads(raw)

    keys = json.loads(os.getenv("COMMON_WEBHOOK_SIGNING_KEYS") or "{}")
    key = keys.get(str(event.get("community_id", "")))
    if not key:
        raise SystemExit(f"no signing key for community {event.get('community_id')!r}")

    header_name = os.getenv("COMMON_SIGNATURE_HEADER", DEFAULT_SIGNATURE_HEADER)
    header = signature_header(raw, key)
    print(f"{header_name}: {header}")

    if len(argv) == 3:
        r = requests.post(argv[2], data=raw, headers={header_name: header, "Content-Type": "application/json"},
                          timeout=30)
        print(f"[{'OK' if r.ok else 'ERR'}] {r.status_code} {r.text[:300]}")
        return 0 if r.ok else 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
