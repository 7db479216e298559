"""Request-boundary helpers shared by route modules."""
