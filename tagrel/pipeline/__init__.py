"""Release trigger pipeline."""
