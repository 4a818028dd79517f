from __future__ import annotations

from eth_utils import to_checksum_address

from scroll_paths.core.constants.chains import (
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_BASE,
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_SCROLL,
)

# Canonical Permit2 deployment (same address on every supported chain).
PERMIT2 = to_checksum_address("0x000000000022D473030F116dDEE9F6B43aC78BA3")

SCROLL_WETH = to_checksum_address("0x5300000000000000000000000000000000000004")
SCROLL_WSTETH = to_checksum_address("0xf610A9dfB7C89644979b4A0f27063E9e7d7Cda32")
SCROLL_USDC = to_checksum_address("0x06eFdBFf2a14a7c8E15944D1F4A48F9F95F663A4")

# Aave v3 Pool proxies.
AAVE_V3_POOL_BY_CHAIN: dict[int, str] = {
    CHAIN_ID_ETHEREUM: to_checksum_address("0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2"),
    CHAIN_ID_BASE: to_checksum_address("0xA238Dd80C259a72e81d7e4664a9801593F98d1c5"),
    CHAIN_ID_ARBITRUM: to_checksum_address("0x794a61358D6845594F94dc1DB02A252b5b4814aD"),
    CHAIN_ID_SCROLL: to_checksum_address("0x11fCfe756c05AD438e312a7fd934381537D3cFfe"),
}

# USDT-style tokens that reject approve(x) while a nonzero allowance is outstanding.
TOKENS_REQUIRING_APPROVAL_RESET: set[tuple[int, str]] = {
    (
        CHAIN_ID_ETHEREUM,
        to_checksum_address("0xdAC17F958D2ee523a2206206994597C13D831ec7"),
    ),
}
