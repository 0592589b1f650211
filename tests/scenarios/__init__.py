"""End-to-end replay scenarios.

This package contains scenario tests that run complete replays against
example handlers and check the resulting counts, duplicates and verdicts.
Each scenario covers one kind of handler behavior.
"""
