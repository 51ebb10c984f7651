"""Request middleware and auth helpers."""
