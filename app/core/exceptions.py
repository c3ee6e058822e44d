"""
Domain errors raised by access-control mutations.

Decision functions never raise these for a denied check; they return False or
an empty result. Only write paths that break an authority rule or reference a
missing entity raise. The HTTP layer maps them in app.main.
"""


class AccessControlError(Exception):
    """Base class for access-control errors."""

    default_detail = "Access control error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Forbidden(AccessControlError):
    """Caller is authenticated but lacks authority for the mutation."""

    default_detail = "Forbidden"


class NotFound(AccessControlError):
    """Referenced entity (user, department, grant, field set) does not exist."""

    default_detail = "Not found"


class InvalidRange(AccessControlError):
    """A time window ends before it starts."""

    default_detail = "end_at must not be earlier than start_at"
