from scroll_paths.core.constants.base import MAX_UINT256, ZERO_ADDRESS
from scroll_paths.core.constants.chains import CHAIN_ID_SCROLL, SUPPORTED_CHAINS

__all__ = [
    "CHAIN_ID_SCROLL",
    "MAX_UINT256",
    "SUPPORTED_CHAINS",
    "ZERO_ADDRESS",
]
