"""Quest log services."""
