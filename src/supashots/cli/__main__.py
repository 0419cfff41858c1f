"""CLI entry point for supashots.cli module.

Enables execution via: python -m supashots.cli generate IMAGE
"""

from supashots.cli.generate import main

if __name__ == "__main__":
    raise SystemExit(main())
