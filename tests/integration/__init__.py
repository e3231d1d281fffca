"""
listing-store — integration test package.

Purpose
- Test package marker file.

Functional requirements
- Must not import heavy modules at import time; keep test collection fast.
- Must not trigger network access; remotes are local bare repositories.
"""
