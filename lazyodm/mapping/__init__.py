"""Document mapping metadata."""
