"""Keycloak-specific exceptions for error handling.

Every exception here aborts the current export invocation. Nothing is
retried inside the package; the next scheduled run is the retry boundary.
"""


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class TransportError(KeycloakError):
    """Network, TLS or timeout failure talking to Keycloak.

    Attributes:
        endpoint: URL that was being requested
    """

    def __init__(self, message: str, endpoint: str = ""):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}" if endpoint else message)


class KeycloakAPIError(TransportError):
    """Non-2xx HTTP response from Keycloak Admin API.
    
    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """
    
    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{status_code}] {message}", endpoint)


class AuthError(KeycloakError):
    """Token endpoint refused the admin credentials or returned no token.

    Attributes:
        status_code: HTTP status of the token response, if any
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProtocolError(KeycloakError):
    """Response body is not the JSON shape the endpoint promises."""
    pass
