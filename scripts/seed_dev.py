#!/usr/bin/env python
"""Seed development database with an active couple.

Creates two users (Alice and Bob), pairs them and turns on every consent
toggle for both, so the gated endpoints can be exercised locally.

Constraints:
- Refuses to run in staging or prod (TANDEM_ENV check)
- Idempotent: existing users and couples are left alone
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... uv run python ../scripts/seed_dev.py
"""

import os
import sys
from uuid import UUID

SEED_ALICE_ID = UUID("00000000-0000-4000-8000-00000000a11c")
SEED_BOB_ID = UUID("00000000-0000-4000-8000-000000000b0b")


def main():
    # 1. Environment check (hard fail in staging/prod)
    tandem_env = os.getenv("TANDEM_ENV", "local")
    if tandem_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in TANDEM_ENV={tandem_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from tandem.db.models import ConsentType
    from tandem.db.session import get_session_factory
    from tandem.services import consent as consent_service
    from tandem.services import pairing as pairing_service
    from tandem.services.bootstrap import ensure_user

    db = get_session_factory()()
    try:
        # 3. Users
        alice = ensure_user(db, SEED_ALICE_ID, display_name="Alice")
        bob = ensure_user(db, SEED_BOB_ID, display_name="Bob")

        # 4. Couple (only when both are free)
        paired = False
        if alice.couple_id is None and bob.couple_id is None:
            couple = pairing_service.request_pairing(db, alice.id, bob.pairing_code)
            pairing_service.accept_pairing(db, bob.id, couple.id)
            everything = {consent_type: True for consent_type in ConsentType}
            consent_service.update_consent(db, alice.id, everything)
            consent_service.update_consent(db, bob.id, everything)
            paired = True
    finally:
        db.close()

    # 5. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"TANDEM_ENV: {tandem_env}")
    print()
    print(f"• User Alice {SEED_ALICE_ID} (code {alice.pairing_code})")
    print(f"• User Bob   {SEED_BOB_ID} (code {bob.pairing_code})")
    print(f"{'✓ Created' if paired else '• Exists'}: couple with all consent toggles on")


if __name__ == "__main__":
    main()
