class AuthenticationError(Exception):
    pass


class AuthenticationRequired(AuthenticationError):
    """No valid credential is available; an interactive sign-in is needed."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class TokenAcquisitionError(AuthenticationError):
    pass


class GraphAPIError(Exception):
    """A Graph call failed. The message embeds the HTTP status when known."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GraphAPIError):
    pass
