"""Keycloak Admin API access for roster exports.

Architecture:
- client.py: HTTP session construction, password-grant token, user listing
- exceptions.py: Typed exceptions; every one of them aborts an export

Usage:
    from roster.core.keycloak import KeycloakClient

    client = KeycloakClient("https://keycloak:8443")
    token = client.acquire_admin_token("admin", "password")
"""
from .client import (
    KeycloakClient,
    build_http_session,
    ADMIN_CLIENT_ID,
    DEFAULT_CONTEXT_PATH,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
)
from .exceptions import (
    KeycloakError,
    TransportError,
    KeycloakAPIError,
    AuthError,
    ProtocolError,
)

__all__ = [
    # Client
    "KeycloakClient",
    "build_http_session",
    "ADMIN_CLIENT_ID",
    "DEFAULT_CONTEXT_PATH",
    "CONNECT_TIMEOUT",
    "READ_TIMEOUT",
    
    # Exceptions
    "KeycloakError",
    "TransportError",
    "KeycloakAPIError",
    "AuthError",
    "ProtocolError",
]
