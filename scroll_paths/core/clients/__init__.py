from scroll_paths.core.clients.ZeroExClient import (
    SwapPrice,
    SwapQuote,
    SwapRequest,
    ZeroExClient,
)

__all__ = [
    "SwapPrice",
    "SwapQuote",
    "SwapRequest",
    "ZeroExClient",
]
