"""Portfolio and blog backend."""
