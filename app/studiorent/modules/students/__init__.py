"""Student profiles."""
