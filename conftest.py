"""Keeps the repository root importable for `tests.*` and `scripts.*` under pytest."""
