"""
Exception hierarchy for the analytics pipeline.
"""

from typing import Any, List, Optional


class FlareStatsError(Exception):
    """Base class for every error raised by the pipeline"""
    pass


class ConfigError(FlareStatsError):
    """Raised when user settings are missing or unreadable"""
    pass


class AnalyticsAPIError(FlareStatsError):
    """Base class for failures talking to the Cloudflare API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(AnalyticsAPIError):
    """Raised when the API rejects the token or the account"""
    pass


class TransportError(AnalyticsAPIError):
    """Raised on connection failures and non-auth HTTP errors"""
    pass


class GraphQLError(AnalyticsAPIError):
    """Raised when the GraphQL response carries an errors array"""

    def __init__(self, errors: List[Any]):
        super().__init__(f"GraphQL errors: {errors}")
        self.errors = errors


class SchemaError(AnalyticsAPIError):
    """Raised when a response is missing the structure we need"""
    pass
