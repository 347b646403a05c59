"""Keycloak realm roster export."""

__version__ = "0.1.0"
