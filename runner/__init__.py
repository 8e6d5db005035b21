"""agent0 runner service."""
