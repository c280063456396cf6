"""Allow ``python -m nocapture_lint``."""

from nocapture_lint.main import main

if __name__ == "__main__":
    raise SystemExit(main())
