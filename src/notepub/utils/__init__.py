from .backoff import compute_backoff
from .redact import redact

__all__ = [
    "compute_backoff",
    "redact",
]
