"""Regional sessions, API errors and the common shape of nukeable resources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

ClientFactory = Callable[[str, str], Any]


class ApiError(Exception):
    """An error reported by a cloud API, carrying the service's error code."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" if self.message else self.code


def error_code(error: BaseException) -> str | None:
    """Return the API error code carried by ``error``, or None if it has none.

    Understands both :class:`ApiError` and exceptions that expose a
    ``response`` mapping of the form ``{"Error": {"Code": ...}}``.
    """
    if isinstance(error, ApiError):
        return error.code
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        details = response.get("Error")
        if isinstance(details, dict):
            code = details.get("Code")
            if code is not None:
                return str(code)
    return None


@dataclass(frozen=True)
class Session:
    """A region bound to a factory that builds service clients for it.

    The factory is called as ``client_factory(service, region)`` and must
    return an object offering the API calls of that service as keyword
    methods returning dictionaries, plus ``get_waiter(name).wait(**params)``.
    """

    region: str
    client_factory: ClientFactory

    def client(self, service: str) -> Any:
        """Return a client for ``service`` in this session's region."""
        return self.client_factory(service, self.region)


def new_session(region: str, client_factory: ClientFactory) -> Session:
    """Create a session for ``region``."""
    return Session(region=region, client_factory=client_factory)


class Resource(ABC):
    """A batch of resources of one kind found in one region."""

    resource_name: ClassVar[str] = ""
    max_batch_size: ClassVar[int] = 200

    @property
    @abstractmethod
    def identifiers(self) -> list[str]:
        """The identifiers of the collected resources."""

    @abstractmethod
    def nuke(self, session: Session, identifiers: list[str]) -> None:
        """Delete the resources named by ``identifiers``."""