"""Terminal rendering helpers for the proxy CLI."""
