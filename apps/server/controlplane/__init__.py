"""Control-plane API core package."""
