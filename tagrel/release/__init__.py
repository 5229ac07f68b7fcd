"""Release hosting (GitHub releases through the gh CLI)."""
