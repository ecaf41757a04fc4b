"""Remote classifier access for LinkGuard."""

from .client import ClassifierClient, normalize_response
from .retry import RetryPolicy

__all__ = [
    "ClassifierClient",
    "RetryPolicy",
    "normalize_response",
]
