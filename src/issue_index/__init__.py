"""News headline clustering and hourly issue index pipeline."""
