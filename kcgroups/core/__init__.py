"""Core client modules."""
