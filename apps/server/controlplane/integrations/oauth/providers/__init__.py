"""Concrete OAuth2 sign-in providers."""
