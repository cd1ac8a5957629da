"""Core storage and utility modules."""
