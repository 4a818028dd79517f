from scroll_paths.core.adapters.BaseAdapter import BaseAdapter
from scroll_paths.core.errors import (
    ApprovalFailed,
    BroadcastRejected,
    QuoteUnavailable,
    ReserveNotFound,
    ScrollPathsError,
    SigningFailed,
    SlippageExceeded,
    TransactionDataMissing,
)

__all__ = [
    "ApprovalFailed",
    "BaseAdapter",
    "BroadcastRejected",
    "QuoteUnavailable",
    "ReserveNotFound",
    "ScrollPathsError",
    "SigningFailed",
    "SlippageExceeded",
    "TransactionDataMissing",
]
