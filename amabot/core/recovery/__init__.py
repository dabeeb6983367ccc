"""
Recovery helpers shared by network-facing components.
"""

from .retry import RetryPolicy, RetryPredicate

__all__ = [
    "RetryPolicy",
    "RetryPredicate",
]
