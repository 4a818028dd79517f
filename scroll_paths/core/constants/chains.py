CHAIN_ID_ETHEREUM = 1
CHAIN_ID_BASE = 8453
CHAIN_ID_ARBITRUM = 42161
CHAIN_ID_SCROLL = 534352

CHAIN_CODE_TO_ID = {
    "ethereum": CHAIN_ID_ETHEREUM,
    "mainnet": CHAIN_ID_ETHEREUM,
    "base": CHAIN_ID_BASE,
    "arbitrum": CHAIN_ID_ARBITRUM,
    "arbitrum-one": CHAIN_ID_ARBITRUM,
    "scroll": CHAIN_ID_SCROLL,
}

SUPPORTED_CHAINS = [
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_BASE,
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_SCROLL,
]

# Scroll and Arbitrum accept legacy (gasPrice) transactions from the aggregator.
PRE_EIP_1559_CHAIN_IDS: set[int] = {
    CHAIN_ID_ARBITRUM,
    CHAIN_ID_SCROLL,
}

CHAIN_EXPLORER_URLS: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "https://etherscan.io/",
    CHAIN_ID_ARBITRUM: "https://arbiscan.io/",
    CHAIN_ID_BASE: "https://basescan.org/",
    CHAIN_ID_SCROLL: "https://scrollscan.com/",
}


def explorer_tx_url(chain_id: int, txn_hash: str) -> str | None:
    base = CHAIN_EXPLORER_URLS.get(int(chain_id))
    if not base:
        return None
    return f"{base}tx/{txn_hash}"

# Used when config.json has no RPCs for the chain.
PUBLIC_RPC_URLS: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "https://eth.llamarpc.com",
    CHAIN_ID_ARBITRUM: "https://arb1.arbitrum.io/rpc",
    CHAIN_ID_BASE: "https://mainnet.base.org",
    CHAIN_ID_SCROLL: "https://rpc.scroll.io",
}
