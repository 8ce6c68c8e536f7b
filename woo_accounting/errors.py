"""
Error Taxonomy

Exceptions raised by the client, the flattener and the aggregator. The API
layer maps each of them to a `{ok: false, error: ...}` response.
"""

from typing import Optional


class AccountingError(Exception):
    """Base class for all service errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message}


class ConfigurationError(AccountingError):
    """Upstream base URL or credentials are missing"""


class UpstreamFetchError(AccountingError):
    """
    An upstream call failed.

    Covers network failures, timeouts, non-2xx responses and payloads that
    are not JSON or do not have the expected shape. `upstream_status` is None
    when no response was received.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["upstream_status"] = self.upstream_status
        if self.body:
            payload["upstream_body"] = self.body[:500]
        return payload


class InvalidQueryError(AccountingError):
    """Client input rejected before any upstream call"""

    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload
