"""Infrastructure adapters: HTTP image fetching and reference storage."""
