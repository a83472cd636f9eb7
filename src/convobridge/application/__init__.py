"""Use cases: translation, reconciliation, connection lifecycle and routing."""
