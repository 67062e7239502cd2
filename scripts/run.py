#!/usr/bin/env python3
"""Proxy Watch — Application Runner.

Performs pre-flight checks and launches the monitor.

Usage:
    python scripts/run.py
    python scripts/run.py --once
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
╔══════════════════════════════════════════╗
║                                          ║
║            Proxy Watch v1.0              ║
║   Proxy reachability & expiry monitor    ║
║                                          ║
╚══════════════════════════════════════════╝
"""

# Referenced from settings.yaml; may be empty but must be defined.
REQUIRED_ENV_VARS = [
    "PROBE_SERVICE_URL",
    "RELAY_SERVICE_URL",
    "RELAY_AUTH_TOKEN",
]

REQUIRED_FILES = [
    "config/settings.yaml",
]


def preflight_checks() -> bool:
    """Run pre-flight checks before starting the application.

    Checks:
      - .env file exists (loaded if present)
      - Variables referenced by settings.yaml are defined
      - Required config files exist
      - data/ and logs/ directories exist (creates them)

    Returns:
        True if all checks pass, False otherwise.
    """
    os.chdir(str(PROJECT_ROOT))
    ok = True

    env_path = PROJECT_ROOT / ".env"
    if not env_path.exists():
        print("⚠️  .env file not found, using the process environment")
        print("   Copy .env.example to .env to configure the relay.")
    else:
        from dotenv import load_dotenv
        load_dotenv(env_path)
        print("✅ .env loaded")

    for var in REQUIRED_ENV_VARS:
        if var not in os.environ:
            print(f"❌ {var} is not defined (set it, empty if unused)")
            ok = False
        elif not os.environ[var]:
            print(f"⚠️  {var} is empty")
        else:
            val = os.environ[var]
            masked = val[:6] + "..." + val[-4:] if len(val) > 10 else "***"
            print(f"✅ {var} = {masked}")

    for f in REQUIRED_FILES:
        if not (PROJECT_ROOT / f).exists():
            print(f"❌ {f} not found!")
            ok = False
        else:
            print(f"✅ {f} exists")

    for d in ("data", "logs"):
        (PROJECT_ROOT / d).mkdir(exist_ok=True)
        print(f"✅ {d}/ directory ready")

    return ok


def main() -> None:
    """Entry point: run checks then start the application."""
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")
    print("═══ Starting Proxy Watch ═══\n")

    from proxywatch.main import main as app_main
    app_main(sys.argv[1:])


if __name__ == "__main__":
    main()
