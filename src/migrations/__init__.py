"""Handle store SQL migrations."""
