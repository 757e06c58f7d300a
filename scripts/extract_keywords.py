"""Print the search keywords extracted from a JSON-LD context payload.

Usage: python scripts/extract_keywords.py path/to/context.json
Prints one keyword per line, sorted.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from credtoolbox.sdk.keywords import extract_keywords


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: extract_keywords.py <context_json_path>", file=sys.stderr)
        return 2
    path = Path(sys.argv[1])
    try:
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError("payload must be a JSON object")
        for keyword in sorted(extract_keywords(data)):
            print(keyword)
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
