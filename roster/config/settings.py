"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

DEFAULT_PAGE_SIZE = 200


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).
    
    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)
    
    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback
    
    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name
    
    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")
    
    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value
    
    return None


@dataclass
class ExportConfig:
    """Export configuration container."""
    # Keycloak
    base_url: str
    admin_username: str
    admin_password: str = field(repr=False)
    realm: str
    context_path: str = "/auth"
    
    # Paging
    page_size: int = DEFAULT_PAGE_SIZE
    
    # Transport
    tls_verify: bool = True
    ca_bundle: Optional[str] = None
    connect_timeout: float = 30.0
    read_timeout: float = 60.0
    
    # Output
    output_dir: str = ".runtime/export"
    
    # Mode
    demo_mode: bool = False
    
    def __post_init__(self):
        validate_base_url(self.base_url)
        if not self.admin_username or not self.admin_password:
            raise ValueError("Keycloak admin username and password must not be empty")
        if not self.realm:
            raise ValueError("Keycloak realm must not be empty")
        if not isinstance(self.page_size, int) or isinstance(self.page_size, bool) or self.page_size <= 0:
            raise ValueError(f"Page size must be a positive integer, got {self.page_size!r}")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("Timeouts must be positive")


def validate_base_url(url: str) -> str:
    """Reject base URLs that are not absolute http(s) URLs."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Keycloak base URL must be an absolute http(s) URL, got {url!r}")
    return url


def _parse_bool(var_name: str, default: bool) -> bool:
    raw = os.environ.get(var_name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{var_name} must be true or false, got {raw!r}")


def _parse_positive_int(var_name: str, default: int) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{var_name} must be a positive integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{var_name} must be a positive integer, got {raw!r}")
    return value


def _parse_seconds(var_name: str, default: float) -> float:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{var_name} must be a number of seconds, got {raw!r}") from None


def _get_or_default(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value
    
    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default
    
    if not required:
        return ""
    
    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def load_settings() -> ExportConfig:
    """Load export settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    
    base_url = _get_or_default("KEYCLOAK_URL", demo_default="http://localhost:8080", demo_mode=demo_mode)
    admin_username = _get_or_default("KEYCLOAK_ADMIN", demo_default="admin", demo_mode=demo_mode)
    
    admin_password = _load_secret_from_file("keycloak_admin_password", "KEYCLOAK_ADMIN_PASSWORD")
    if not admin_password:
        if not demo_mode:
            raise RuntimeError("KEYCLOAK_ADMIN_PASSWORD not found in /run/secrets or environment")
        print("[demo-mode] Using default for KEYCLOAK_ADMIN_PASSWORD")
        admin_password = "admin"
    
    realm = _get_or_default("KEYCLOAK_REALM", demo_default="demo", demo_mode=demo_mode)
    context_path = os.environ.get("KEYCLOAK_CONTEXT_PATH", "/auth")
    
    page_size = _parse_positive_int("EXPORT_PAGE_SIZE", DEFAULT_PAGE_SIZE)
    
    tls_verify = _parse_bool("KEYCLOAK_TLS_VERIFY", True)
    ca_bundle = os.environ.get("KEYCLOAK_CA_BUNDLE") or None
    if ca_bundle and not Path(ca_bundle).is_file():
        raise ValueError(f"KEYCLOAK_CA_BUNDLE points to a missing file: {ca_bundle}")
    
    connect_timeout = _parse_seconds("KEYCLOAK_CONNECT_TIMEOUT", 30.0)
    read_timeout = _parse_seconds("KEYCLOAK_READ_TIMEOUT", 60.0)
    
    output_dir = os.environ.get("EXPORT_OUTPUT_DIR", ".runtime/export")
    
    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; realm={realm}; page_size={page_size}; tls_verify={tls_verify}")
    
    if not tls_verify:
        print("[settings] WARNING: TLS verification disabled. Keycloak certificates will not be checked.")
    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")
    
    return ExportConfig(
        base_url=base_url,
        admin_username=admin_username,
        admin_password=admin_password,
        realm=realm,
        context_path=context_path,
        page_size=page_size,
        tls_verify=tls_verify,
        ca_bundle=ca_bundle,
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        output_dir=output_dir,
        demo_mode=demo_mode,
    )
