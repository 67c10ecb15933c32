"""Process-wide aggregation stores rendered once at process end."""
