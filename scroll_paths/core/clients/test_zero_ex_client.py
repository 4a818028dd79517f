import httpx
import pytest

from scroll_paths.core.clients.ZeroExClient import SwapRequest, ZeroExClient
from scroll_paths.core.config import set_config
from scroll_paths.core.constants.chains import CHAIN_ID_SCROLL
from scroll_paths.core.constants.contracts import PERMIT2, SCROLL_WETH, SCROLL_WSTETH
from scroll_paths.core.errors import QuoteUnavailable

TAKER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
SETTLER = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"

REQUEST = SwapRequest(
    chain_id=CHAIN_ID_SCROLL,
    sell_token=SCROLL_WETH,
    buy_token=SCROLL_WSTETH,
    sell_amount=10**17,
    taker=TAKER,
    affiliate_fee_bps=100,
    surplus_collection=True,
)

PRICE_RESPONSE = {
    "blockNumber": "11244506",
    "buyAmount": "84119487343213838",
    "buyToken": SCROLL_WSTETH,
    "sellAmount": "100000000000000000",
    "sellToken": SCROLL_WETH,
    "liquidityAvailable": True,
    "affiliateFeeBps": "100",
    "tradeSurplus": "0",
    "issues": {
        "allowance": {"actual": "0", "spender": PERMIT2},
        "balance": None,
        "simulationIncomplete": False,
    },
    "route": {
        "fills": [
            {"from": SCROLL_WETH, "to": SCROLL_WSTETH, "source": "Ambient", "proportionBps": "7000"},
            {"from": SCROLL_WETH, "to": SCROLL_WSTETH, "source": "SyncSwap", "proportionBps": "3000"},
        ]
    },
    "tokenMetadata": {
        "buyToken": {"buyTaxBps": "0", "sellTaxBps": "0"},
        "sellToken": {"buyTaxBps": "150", "sellTaxBps": "25"},
    },
}

QUOTE_RESPONSE = {
    **PRICE_RESPONSE,
    "permit2": {
        "type": "Permit2",
        "hash": "0x" + "11" * 32,
        "eip712": {"types": {}, "domain": {}, "message": {}, "primaryType": "PermitTransferFrom"},
    },
    "transaction": {
        "to": SETTLER,
        "data": "0x1fff991f",
        "gas": "288079",
        "gasPrice": "4837860000",
        "value": "0",
    },
}


def make_client(handler) -> ZeroExClient:
    transport = httpx.MockTransport(handler)
    return ZeroExClient(
        api_key="test-key",
        base_url="https://api.0x.org",
        client=httpx.AsyncClient(transport=transport),
    )


def test_query_params():
    params = REQUEST.to_query_params()

    assert params == {
        "chainId": "534352",
        "sellToken": SCROLL_WETH,
        "buyToken": SCROLL_WSTETH,
        "sellAmount": "100000000000000000",
        "taker": TAKER,
        "affiliateFee": "100",
        "surplusCollection": "true",
    }


def test_query_params_with_affiliate_address():
    request = REQUEST.model_copy(update={"affiliate_address": SETTLER, "affiliate_fee_bps": None})
    params = request.to_query_params()

    assert params["affiliateAddress"] == SETTLER
    assert "affiliateFee" not in params


@pytest.mark.asyncio
async def test_get_price_sends_headers_and_parses_issues():
    async def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/swap/permit2/price"
        assert request.headers["0x-api-key"] == "test-key"
        assert request.headers["0x-version"] == "v2"
        assert dict(request.url.params) == REQUEST.to_query_params()
        return httpx.Response(200, json=PRICE_RESPONSE)

    client = make_client(_handler)
    price = await client.get_price(REQUEST)
    await client.client.aclose()

    assert price.buy_amount == 84119487343213838
    assert price.allowance_issue is not None
    assert price.allowance_issue.spender == PERMIT2
    assert price.route_breakdown() == [("Ambient", 70.0), ("SyncSwap", 30.0)]
    assert price.token_taxes() == {"sell_token_buy_tax": 1.5, "sell_token_sell_tax": 0.25}
    assert price.affiliate_fee_percent == 1.0
    assert price.has_trade_surplus is False


@pytest.mark.asyncio
async def test_get_price_without_allowance_issue():
    body = {**PRICE_RESPONSE, "issues": {"allowance": None, "balance": None}}

    async def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    client = make_client(_handler)
    price = await client.get_price(REQUEST)

    assert price.allowance_issue is None


@pytest.mark.asyncio
async def test_no_liquidity_is_unavailable():
    async def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"liquidityAvailable": False, "zid": "0x1"})

    client = make_client(_handler)
    with pytest.raises(QuoteUnavailable, match="liquidity"):
        await client.get_price(REQUEST)


@pytest.mark.asyncio
async def test_http_error_is_unavailable():
    async def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"name": "INPUT_INVALID", "message": "bad taker"})

    client = make_client(_handler)
    with pytest.raises(QuoteUnavailable) as exc_info:
        await client.get_quote(REQUEST)

    assert exc_info.value.status_code == 400
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_transport_error_is_unavailable():
    async def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(_handler)
    with pytest.raises(QuoteUnavailable, match="failed"):
        await client.get_price(REQUEST)


@pytest.mark.asyncio
async def test_get_quote_parses_transaction_and_permit():
    async def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/swap/permit2/quote"
        return httpx.Response(200, json=QUOTE_RESPONSE)

    client = make_client(_handler)
    quote = await client.get_quote(REQUEST)

    assert quote.transaction.to == SETTLER
    assert quote.transaction.data == "0x1fff991f"
    assert quote.transaction.as_fields()["gasPrice"] == "4837860000"
    assert quote.requires_permit_signature is True


@pytest.mark.asyncio
async def test_quote_without_transaction_is_unavailable():
    body = {k: v for k, v in QUOTE_RESPONSE.items() if k != "transaction"}

    async def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    client = make_client(_handler)
    with pytest.raises(QuoteUnavailable, match="no transaction"):
        await client.get_quote(REQUEST)


@pytest.mark.asyncio
async def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("ZERO_EX_API_KEY", raising=False)
    set_config({})
    calls = []

    async def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=PRICE_RESPONSE)

    client = ZeroExClient(client=httpx.AsyncClient(transport=httpx.MockTransport(_handler)))
    with pytest.raises(QuoteUnavailable, match="API key"):
        await client.get_price(REQUEST)
    assert calls == []


@pytest.mark.asyncio
async def test_api_key_from_config():
    set_config({"system": {"zero_ex_api_key": "from-config"}})

    async def _handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["0x-api-key"] == "from-config"
        return httpx.Response(200, json=PRICE_RESPONSE)

    client = ZeroExClient(client=httpx.AsyncClient(transport=httpx.MockTransport(_handler)))
    price = await client.get_price(REQUEST)

    assert price.sell_amount == 10**17


@pytest.mark.asyncio
async def test_get_liquidity_sources():
    async def _handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/swap/v1/sources"
        assert request.url.params["chainId"] == "534352"
        return httpx.Response(
            200, json={"sources": {"Ambient": {}, "SyncSwap": {}, "Uniswap_V3": {}}}
        )

    client = make_client(_handler)
    sources = await client.get_liquidity_sources(CHAIN_ID_SCROLL)

    assert sources == ["Ambient", "SyncSwap", "Uniswap_V3"]


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    async def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    client = make_client(_handler)
    await client.close()

    assert client.client.is_closed is False
