#!/usr/bin/env python3
"""
Quick checks that the client can talk to the marketplace API. Run from the repo root:
  python scripts/check_api.py
"""
import sys
from pathlib import Path

root_dir = Path(__file__).resolve().parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))


def main():
    errors = []

    # 1) .env
    env_file = root_dir / ".env"
    if not env_file.exists():
        print("WARN .env missing; using defaults (TASKHUB_API_URL, TASKHUB_STORAGE_URL, ...)")
    else:
        print("OK  .env exists")

    try:
        from taskhub.config import settings
        print(f"OK  Settings loaded (api_url={settings.api_url})")
    except Exception as e:
        print("FAIL Settings:", e)
        return 1

    # 2) Durable storage (where the auth token lives)
    storage = None
    try:
        from sqlalchemy import text
        from taskhub.db.session import engine
        from taskhub.services.storage import DatabaseStorage

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        storage = DatabaseStorage()
        print(f"OK  Storage ({settings.storage_url})")
    except Exception as e:
        errors.append(f"Storage: {e}")
        print("FAIL Storage:", e)

    # 3) API reachability. Any HTTP answer counts; only transport failures fail the check.
    try:
        from taskhub.services.api import ApiClient
        from taskhub.services.storage import MemoryStorage

        client = ApiClient(storage or MemoryStorage())
        resp = client.get_profile()
        if resp.status_code is None:
            errors.append(f"API unreachable at {client.base_url}: {resp.error}")
            print("FAIL API:", resp.error)
        elif resp.ok:
            print(f"OK  API reachable, stored token is valid ({resp.status_code})")
        else:
            print(f"OK  API reachable ({resp.status_code}; no valid stored token)")
    except Exception as e:
        errors.append(f"API client: {e}")
        print("FAIL API client:", e)

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        return 1

    print("\nAll checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
