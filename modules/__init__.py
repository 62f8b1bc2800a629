"""Helper modules for the lunch order automation."""

__all__ = [
    "budget",
    "callee",
    "fuzzy_matcher",
    "money",
    "notification",
]
