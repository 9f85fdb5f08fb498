from __future__ import annotations

from update_notifier.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
