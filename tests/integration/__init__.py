"""Integration tests for postcheck.

This package contains tests that exercise complete workflows: the CLI end
to end, and full catalog runs with concurrency and read-after-delete
retries.

Test Structure:
- test_cli.py: run, scenarios and config commands
- test_catalog_runs.py: concurrent and seeded catalog runs
"""
