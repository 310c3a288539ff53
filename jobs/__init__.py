"""Background workers and scheduler."""
