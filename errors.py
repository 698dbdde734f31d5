"""
Error types for the matching engine
Each error carries the HTTP status the request handler maps it to
"""


class MatchingError(Exception):
    """Base class for errors that abort a matching request"""

    status_code = 500


class AuthenticationError(MatchingError):
    """No authenticated requester"""

    status_code = 401


class InputError(MatchingError):
    """Bad or missing request fields, or a requester profile that cannot be matched"""

    status_code = 400


class NotFoundError(MatchingError):
    """Requester has no profile"""

    status_code = 404


class DependencyError(MatchingError):
    """Profile or embedding store unreachable or failing"""

    status_code = 500
