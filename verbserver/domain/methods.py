"""The finite set of HTTP methods the dispatcher understands.

Members follow the IANA HTTP Method Registry
(https://www.iana.org/assignments/http-methods/). Each member knows the name
of the handler method a server subclass overrides; anything outside the
registry maps to ``HttpMethod.UNKNOWN``.
"""

import enum


class HttpMethod(enum.Enum):
    ACL = "acl"
    BASELINE_CONTROL = "baseline-control"
    BIND = "bind"
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    CONNECT = "connect"
    COPY = "copy"
    DELETE = "delete"
    GET = "get"
    HEAD = "head"
    LABEL = "label"
    LINK = "link"
    LOCK = "lock"
    MERGE = "merge"
    MKACTIVITY = "mkactivity"
    MKCALENDAR = "mkcalendar"
    MKCOL = "mkcol"
    MKREDIRECTREF = "mkredirectref"
    MKWORKSPACE = "mkworkspace"
    MOVE = "move"
    OPTIONS = "options"
    ORDERPATCH = "orderpatch"
    PATCH = "patch"
    POST = "post"
    PRI = "pri"
    PROPFIND = "propfind"
    PROPPATCH = "proppatch"
    PUT = "put"
    REBIND = "rebind"
    REPORT = "report"
    SEARCH = "search"
    TRACE = "trace"
    UNBIND = "unbind"
    UNCHECKOUT = "uncheckout"
    UNLINK = "unlink"
    UNLOCK = "unlock"
    UPDATE = "update"
    UPDATEREDIRECTREF = "updateredirectref"
    VERSION_CONTROL = "version-control"
    UNKNOWN = ""

    @classmethod
    def from_token(cls, token: str) -> "HttpMethod":
        """Map a request-line method token (any case) to a member."""
        if not token:
            return cls.UNKNOWN
        try:
            return cls(token.lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def handler_name(self) -> str:
        """Name of the server method handling this verb."""
        if self is HttpMethod.UNKNOWN:
            return "all_methods"
        return self.value.replace("-", "_")

    @property
    def is_known(self) -> bool:
        return self is not HttpMethod.UNKNOWN


REGISTERED_METHODS = tuple(m for m in HttpMethod if m.is_known)
