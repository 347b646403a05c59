"""Low-level HTTP client for the Keycloak token and user listing endpoints.

The ``requests.Session`` is built once per (re)configuration by
``build_http_session`` and is only read afterwards. Bearer tokens are
returned to the caller and never stored on the client.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any, Tuple, TYPE_CHECKING

import requests
import urllib3

from .exceptions import AuthError, KeycloakAPIError, ProtocolError, TransportError

if TYPE_CHECKING:
    from roster.config import ExportConfig
    from roster.core.models import PageRequest

logger = logging.getLogger(__name__)

ADMIN_CLIENT_ID = "admin-cli"
TOKEN_REALM = "master"
DEFAULT_CONTEXT_PATH = "/auth"
CONNECT_TIMEOUT = 30.0
READ_TIMEOUT = 60.0


def build_http_session(config: ExportConfig) -> requests.Session:
    """Create the transport session for one configuration cycle.
    
    TLS verification follows ``config.tls_verify``; a CA bundle path takes
    precedence when verification is enabled.
    
    Args:
        config: Export configuration
        
    Returns:
        Configured requests session
    """
    session = requests.Session()
    session.headers["Accept"] = "application/json"
    if not config.tls_verify:
        logger.warning(
            "TLS certificate and hostname verification DISABLED for %s (KEYCLOAK_TLS_VERIFY=false)",
            config.base_url,
        )
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    elif config.ca_bundle:
        session.verify = config.ca_bundle
    return session


class KeycloakClient:
    """Keycloak client limited to what a roster export needs.
    
    Usage:
        client = KeycloakClient.from_config(config)
        token = client.acquire_admin_token("admin", "password")
        body = client.fetch_users_page(token, PageRequest(client.base_url, "demo", 0, 200))
    """
    
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        context_path: str = DEFAULT_CONTEXT_PATH,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
    ):
        """Initialize Keycloak client.
        
        Args:
            base_url: Keycloak base URL (scheme, host and port)
            session: Pre-configured session (a plain one is created if omitted)
            context_path: Path prefix of the Keycloak HTTP context ("/auth" or "")
            connect_timeout: Seconds to wait for the TCP/TLS handshake
            read_timeout: Seconds to wait for response data
        """
        self.base_url = base_url.rstrip("/")
        self.context_path = ("/" + context_path.strip("/")) if context_path.strip("/") else ""
        self.session = session or requests.Session()
        self.timeout: Tuple[float, float] = (connect_timeout, read_timeout)
    
    @classmethod
    def from_config(cls, config: ExportConfig) -> "KeycloakClient":
        return cls(
            config.base_url,
            session=build_http_session(config),
            context_path=config.context_path,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )
    
    def close(self) -> None:
        self.session.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, *args):
        self.close()
    
    @property
    def token_url(self) -> str:
        return f"{self.base_url}{self.context_path}/realms/{TOKEN_REALM}/protocol/openid-connect/token"
    
    def users_url(self, base_url: str, realm: str) -> str:
        return f"{base_url.rstrip('/')}{self.context_path}/admin/realms/{realm}/users"
    
    def acquire_admin_token(self, username: str, password: str) -> str:
        """Obtain an admin token via the password grant on the master realm.
        
        Args:
            username: Admin username
            password: Admin password
            
        Returns:
            Non-empty bearer token
            
        Raises:
            TransportError: Connection, TLS or timeout failure
            AuthError: Token refused, or response carries no access_token
            ProtocolError: 2xx response that is not a JSON object
        """
        if not username or not password:
            raise ValueError("Admin username and password are required")
        
        url = self.token_url
        data = {
            "username": username,
            "password": password,
            "grant_type": "password",
            "client_id": ADMIN_CLIENT_ID,
        }
        logger.debug("Requesting admin token from %s", url)
        try:
            resp = self.session.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Unable to get token from %s: %s", url, e)
            raise TransportError(str(e), url) from e
        
        if resp.status_code >= 400:
            raise AuthError(
                f"Token request rejected with HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        
        payload = self._json_object(resp, url)
        token = payload.get("access_token")
        if not token or not isinstance(token, str):
            raise AuthError("Invalid credential response: access_token missing or empty", resp.status_code)
        return token
    
    def fetch_users_page(self, token: str, request: PageRequest) -> bytes:
        """Fetch one page of the realm's user listing.
        
        Args:
            token: Bearer token from acquire_admin_token
            request: Realm and pagination window
            
        Returns:
            Raw response body (expected to be a JSON array)
            
        Raises:
            TransportError: Connection, TLS or timeout failure
            KeycloakAPIError: Non-2xx response
        """
        url = self.users_url(request.base_url, request.realm)
        headers = {"Authorization": f"Bearer {token}"}
        logger.debug("GET %s first=%d max=%d", url, request.first, request.max)
        try:
            resp = self.session.get(url, params=request.params, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Unable to get users at first=%d: %s", request.first, e)
            raise TransportError(str(e), url) from e
        self._handle_error(resp, url)
        return resp.content
    
    def _json_object(self, resp: requests.Response, url: str) -> Dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError as e:
            raise ProtocolError(f"{url}: response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ProtocolError(f"{url}: expected a JSON object, got {type(payload).__name__}")
        return payload
    
    def _handle_error(self, resp: requests.Response, url: str) -> None:
        """Centralized error handling for HTTP responses.
        
        Raises:
            KeycloakAPIError: If response status is not 2xx
        """
        if not 200 <= resp.status_code < 300:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
