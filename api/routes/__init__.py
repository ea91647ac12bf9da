"""Routers grouped by resource, mounted under the API prefix."""
