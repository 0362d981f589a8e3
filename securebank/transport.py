"""
Transport Shapes

Inbound requests reach the core in one of a few shapes: a parsed cookie map,
a raw ``Cookie`` header string, or a header accessor function. They are all
described by ``RequestTransport``; ``extract_session_token`` tries a fixed,
ordered list of strategies against it and is the only place that knows about
the differences.

Outbound, the core emits ``SessionCookie`` instructions which the transport
adapter turns into a ``Set-Cookie`` header.
"""

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple

SESSION_COOKIE = "session"


@dataclass(frozen=True)
class RequestTransport:
    """
    What the core may read from an inbound request.

    Attributes:
        cookies: Cookie map already parsed by the framework
        cookie_header: Raw ``Cookie`` header, when headers are directly accessible
        header_getter: Accessor in the style of ``headers.get(name)``
    """
    cookies: Optional[Mapping[str, str]] = None
    cookie_header: Optional[str] = None
    header_getter: Optional[Callable[[str], Optional[str]]] = None

    @classmethod
    def from_cookies(cls, cookies: Mapping[str, str],
                     cookie_header: Optional[str] = None) -> 'RequestTransport':
        return cls(cookies=cookies, cookie_header=cookie_header)

    @classmethod
    def from_cookie_header(cls, cookie_header: Optional[str]) -> 'RequestTransport':
        return cls(cookie_header=cookie_header)

    @classmethod
    def from_header_getter(cls, getter: Callable[[str], Optional[str]]) -> 'RequestTransport':
        return cls(header_getter=getter)

    @classmethod
    def anonymous(cls) -> 'RequestTransport':
        return cls()


def parse_cookie_header(cookie_header: Optional[str], name: str = SESSION_COOKIE) -> Optional[str]:
    """Find ``name=value`` in a ``; ``-separated cookie header"""
    if not cookie_header:
        return None
    prefix = f"{name}="
    for part in cookie_header.split("; "):
        if part.startswith(prefix):
            value = part[len(prefix):]
            return value or None
    return None


def _from_cookie_map(transport: RequestTransport, name: str) -> Optional[str]:
    if transport.cookies is None:
        return None
    value = transport.cookies.get(name)
    # a present-but-empty cookie falls through to the header strategies
    return value or None


def _from_cookie_header(transport: RequestTransport, name: str) -> Optional[str]:
    return parse_cookie_header(transport.cookie_header, name)


def _from_header_getter(transport: RequestTransport, name: str) -> Optional[str]:
    if transport.cookie_header is not None or transport.header_getter is None:
        return None
    return parse_cookie_header(transport.header_getter("cookie"), name)


TOKEN_EXTRACTORS: Tuple[Callable[[RequestTransport, str], Optional[str]], ...] = (
    _from_cookie_map,
    _from_cookie_header,
    _from_header_getter,
)


def extract_session_token(transport: Optional[RequestTransport],
                          name: str = SESSION_COOKIE) -> Optional[str]:
    """Return the first non-empty session token found, in precedence order"""
    if transport is None:
        return None
    for extractor in TOKEN_EXTRACTORS:
        token = extractor(transport, name)
        if token:
            return token
    return None


@dataclass(frozen=True)
class SessionCookie:
    """Instruction to set (or clear) the session cookie"""
    value: str
    max_age: int
    name: str = SESSION_COOKIE
    path: str = "/"
    http_only: bool = True
    same_site: str = "strict"

    @classmethod
    def issue(cls, token: str, max_age: int, name: str = SESSION_COOKIE,
              path: str = "/") -> 'SessionCookie':
        return cls(value=token, max_age=max_age, name=name, path=path)

    @classmethod
    def clear(cls, name: str = SESSION_COOKIE, path: str = "/") -> 'SessionCookie':
        return cls(value="", max_age=0, name=name, path=path)

    def header_value(self) -> str:
        parts = [f"{self.name}={self.value}", f"Path={self.path}"]
        if self.http_only:
            parts.append("HttpOnly")
        parts.append(f"SameSite={self.same_site.capitalize()}")
        parts.append(f"Max-Age={self.max_age}")
        return "; ".join(parts)
