"""Fetch the built-in credential type contexts and import them into MongoDB.

Usage: python scripts/import_builtin_types.py
Reads the CTB_* environment variables for the database connection.
"""

from __future__ import annotations

import sys

from credtoolbox.cli.config import ToolboxConfig, create_services, setup_logging


def main() -> int:
    config = ToolboxConfig()
    setup_logging(config)
    try:
        services = create_services(config)
        report = services.registry.preload()
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(f"Imported {len(report.imported)}, unchanged {len(report.unchanged)}, failed {len(report.failed)}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
