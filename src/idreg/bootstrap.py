"""
Identity Registry Bootstrap CLI
===============================
First-run setup.  Creates the schema and configures the authority gate,
which must be set before any identity can be registered.

Usage:
    python -m idreg.bootstrap

The script does nothing if an authority is already configured (the gate is
write-once).
"""

import sys

from idreg.core.db import SessionLocal, init_db
from idreg.registry.errors import Err
from idreg.registry.service import Registry
from idreg.settings import settings
from idreg.util.logging import setup_logging

BOOTSTRAP_PRINCIPAL = "bootstrap"


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    print()
    print("=" * 60)
    print("  Identity Registry")
    print("  First-Run Bootstrap")
    print("=" * 60)
    print()

    print("[1/2] Creating schema ...")
    init_db()

    db = SessionLocal()
    try:
        registry = Registry(db)
        authority = registry.get_authority()
        if authority is not None:
            print(f"       Authority already configured: {authority}")
            print("Bootstrap not required.")
            return

        print("[2/2] Configuring authority ...")
        principal = input("  Authority principal: ").strip()
        result = registry.set_authority(BOOTSTRAP_PRINCIPAL, principal)
        if isinstance(result, Err):
            print(f"ERROR: {result.code.name} ({int(result.code)})")
            sys.exit(1)

        print()
        print("=" * 60)
        print("  Bootstrap complete!")
        print(f"  Authority: {result.value}")
        print("=" * 60)
        print()

    except KeyboardInterrupt:
        print("\n\nBootstrap cancelled.")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
