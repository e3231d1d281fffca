"""Module entrypoint for ``python -m listing_store``."""

from __future__ import annotations

from listing_store.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
