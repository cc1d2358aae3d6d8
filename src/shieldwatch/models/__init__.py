"""Models - behavior profiles."""
