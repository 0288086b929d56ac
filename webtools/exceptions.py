from typing import Optional


class WebToolError(Exception):
    """Base exception for web tool errors"""
    pass


class WebToolConfigError(WebToolError):
    """Raised when the API key is missing or unusable"""
    pass


class WebToolValidationError(WebToolError):
    """Raised when a query or URL is rejected before any request is sent"""
    pass


class WebToolAPIError(WebToolError):
    """Raised when the API answers with a non-success status"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class WebToolClientError(WebToolAPIError):
    """Raised for 4xx responses, never retried"""
    pass


class WebToolServerError(WebToolAPIError):
    """Raised for 5xx responses, retried"""
    pass


class WebToolNetworkError(WebToolError):
    """Raised when the transport fails before a usable response arrives"""
    pass


class WebToolTimeoutError(WebToolNetworkError):
    """Raised when a single attempt exceeds its deadline"""
    pass


class WebToolCancelledError(WebToolError):
    """Raised when the caller aborts a request"""
    pass


class ToolNotRegisteredError(WebToolError):
    """Raised when a tool is unknown or its registration gate is closed"""
    pass
