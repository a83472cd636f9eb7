"""Domain models shared by every layer."""
