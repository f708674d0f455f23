"""HTTP layer: authenticated API transport and artifact downloads."""
