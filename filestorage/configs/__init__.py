"""Connection configuration modules."""
