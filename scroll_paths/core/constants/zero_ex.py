ZERO_EX_DEFAULT_BASE_URL = "https://api.0x.org"
ZERO_EX_DEFAULT_API_VERSION = "v2"

ZERO_EX_ENDPOINTS = {
    "price": "/swap/permit2/price",
    "quote": "/swap/permit2/quote",
    "sources": "/swap/v1/sources",
}

ZERO_EX_API_KEY_HEADER = "0x-api-key"
ZERO_EX_API_VERSION_HEADER = "0x-version"

DEFAULT_AFFILIATE_FEE_BPS = 100  # 1%
