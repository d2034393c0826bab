"""
Error types for the remote bills API
"""


class BillsAPIError(Exception):
    """Base class for bills API failures"""
    pass


class TransportError(BillsAPIError):
    """Raised when the API cannot be reached (connection, timeout)"""
    pass


class RateLimitError(BillsAPIError):
    """Raised when API rate limit is exceeded and retries are exhausted"""
    pass


class RemoteHTTPError(BillsAPIError):
    """Raised for a non-200 response that is not a rate-limit signal"""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API HTTP error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class RemoteBusinessError(BillsAPIError):
    """Raised when the envelope carries a non-success business code"""

    def __init__(self, code: str, message: str):
        super().__init__(f"OKX business error {code}: {message}")
        self.code = code
        self.remote_message = message


class MalformedResponseError(BillsAPIError):
    """Raised when a response body is not the expected envelope"""
    pass
