"""HTTP API for warden."""
