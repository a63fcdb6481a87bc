"""Media optimization."""
