"""Quest log view-model service."""
