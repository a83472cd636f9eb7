"""HTTP and CLI entry points."""
