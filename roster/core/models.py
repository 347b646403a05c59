"""Wire-format types for the Keycloak user listing."""
from __future__ import annotations
import json
from dataclasses import dataclass, field, asdict
from typing import Any, Optional, List

from .keycloak.exceptions import ProtocolError

PAGE_CONTENT_TYPE = "application/json"


@dataclass
class UserRecord:
    """One entry of ``GET /admin/realms/{realm}/users``.

    Field names follow Keycloak's ``UserRepresentation`` JSON so that
    ``to_dict()`` reproduces the wire shape. ``origin`` is the alias of the
    federated provider that supplied the user, ``None`` for local users.
    """
    id: Optional[str] = None
    createdTimestamp: Optional[int] = None
    username: Optional[str] = None
    enabled: Optional[bool] = None
    emailVerified: Optional[bool] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    federationLink: Optional[str] = None
    serviceAccountClientId: Optional[str] = None
    origin: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserRecord":
        """Build a record, ignoring attributes this model does not know."""
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class PageRequest:
    """Everything needed to issue one listing call."""
    base_url: str
    realm: str
    first: int
    max: int

    def __post_init__(self):
        if not self.realm:
            raise ValueError("realm must not be empty")
        if self.first < 0:
            raise ValueError(f"first must be >= 0, got {self.first}")
        if self.max <= 0:
            raise ValueError(f"max must be > 0, got {self.max}")

    @property
    def params(self) -> dict[str, int]:
        return {"first": self.first, "max": self.max}

    def next(self) -> "PageRequest":
        """Request for the page that follows this one."""
        return PageRequest(self.base_url, self.realm, self.first + self.max, self.max)


@dataclass(frozen=True)
class Page:
    """Raw listing response plus the number of users it holds."""
    request: PageRequest
    body: bytes
    count: int

    @classmethod
    def parse(cls, request: PageRequest, body: bytes) -> "Page":
        """Count the users in ``body`` without touching the bytes.

        Raises:
            ProtocolError: If body is not a JSON array
        """
        try:
            decoded = json.loads(body)
        except ValueError as e:
            raise ProtocolError(f"users page at first={request.first} is not valid JSON: {e}") from e
        if not isinstance(decoded, list):
            raise ProtocolError(
                f"users page at first={request.first} is a JSON {type(decoded).__name__}, expected an array"
            )
        return cls(request=request, body=body, count=len(decoded))

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def users(self) -> List[UserRecord]:
        return decode_users(self.body)


@dataclass
class ExportResult:
    """Outcome of one successful export invocation."""
    realm: str
    pages_emitted: int = 0
    users_emitted: int = 0
    offsets: List[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def decode_users(body: bytes) -> List[UserRecord]:
    """Decode a listing body into records for downstream consumers.

    Raises:
        ProtocolError: If body is not a JSON array of objects
    """
    try:
        decoded = json.loads(body)
    except ValueError as e:
        raise ProtocolError(f"users page is not valid JSON: {e}") from e
    if not isinstance(decoded, list) or not all(isinstance(item, dict) for item in decoded):
        raise ProtocolError("users page must be a JSON array of objects")
    return [UserRecord.from_dict(item) for item in decoded]
