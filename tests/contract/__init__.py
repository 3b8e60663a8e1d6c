"""Contract tests for the built-in scenario catalog.

These tests run every built-in scenario against an in-memory server that
honours the posts API contract, and against variants of it that break the
contract in one specific way, to show each breach is detected.

Test files:
- test_posts_contract.py: listing, filtering, auth guard and post lifecycle
"""
