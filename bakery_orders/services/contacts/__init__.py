"""Contact directory access."""
