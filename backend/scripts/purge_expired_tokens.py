"""
Delete refresh token registry entries that have expired.

Expired refresh tokens already fail signature-time verification, so their
registry rows only take up space. Safe to run repeatedly, e.g. from cron:

  python scripts/purge_expired_tokens.py
"""

import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from authgate.core.database import SessionLocal  # noqa: E402
from authgate.core.exceptions import RegistryUnavailableError  # noqa: E402
from authgate.services.token_registry import token_registry  # noqa: E402


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    db = SessionLocal()
    try:
        purged = token_registry.purge_expired(db)
    except RegistryUnavailableError as e:
        print(f"Registry unavailable: {e}")
        return 1
    finally:
        db.close()
    print(f"Purged {purged} expired refresh token entries.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
