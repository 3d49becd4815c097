from typing import Optional


class SellerApiError(Exception):
    """The seller-operations API could not be reached or answered non-2xx.

    ``status_code`` is ``None`` for transport-level failures (DNS, refused
    connection, timeout).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.path = path

    def __str__(self) -> str:
        where = f" ({self.path})" if self.path else ""
        if self.status_code is None:
            return f"{self.message}{where}"
        return f"HTTP {self.status_code}: {self.message}{where}"


class EnvelopeError(Exception):
    """Response body reported ``success: false`` or had no usable shape."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DashboardUnavailableError(Exception):
    """The account list could not be loaded, so there is nothing to aggregate."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AccountNotConnectedError(Exception):
    """A dashboard filter named an account the user has not connected."""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} is not connected")
        self.account_id = account_id
        self.message = f"Account {account_id} is not connected"
