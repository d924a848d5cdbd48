"""HTTP API for medpost."""
