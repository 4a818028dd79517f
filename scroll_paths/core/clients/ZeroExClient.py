from __future__ import annotations

import time
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scroll_paths.core.config import (
    get_zero_ex_api_key,
    get_zero_ex_api_version,
    get_zero_ex_base_url,
)
from scroll_paths.core.constants.base import BPS_DENOMINATOR, DEFAULT_HTTP_TIMEOUT
from scroll_paths.core.constants.zero_ex import (
    ZERO_EX_API_KEY_HEADER,
    ZERO_EX_API_VERSION_HEADER,
    ZERO_EX_ENDPOINTS,
)
from scroll_paths.core.errors import QuoteUnavailable
from scroll_paths.core.utils.units import bps_to_percent


class _ZeroExModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class SwapRequest(_ZeroExModel):
    chain_id: int
    sell_token: str
    buy_token: str
    sell_amount: int
    taker: str
    affiliate_fee_bps: int | None = None
    surplus_collection: bool = False
    affiliate_address: str | None = None

    def to_query_params(self) -> dict[str, str]:
        params = {
            "chainId": str(self.chain_id),
            "sellToken": self.sell_token,
            "buyToken": self.buy_token,
            "sellAmount": str(self.sell_amount),
            "taker": self.taker,
        }
        if self.affiliate_fee_bps is not None:
            params["affiliateFee"] = str(self.affiliate_fee_bps)
        params["surplusCollection"] = "true" if self.surplus_collection else "false"
        if self.affiliate_address:
            params["affiliateAddress"] = self.affiliate_address
        return params


class AllowanceIssue(_ZeroExModel):
    spender: str
    actual: int | None = None


class PriceIssues(_ZeroExModel):
    allowance: AllowanceIssue | None = None
    balance: dict[str, Any] | None = None
    simulation_incomplete: bool = Field(False, alias="simulationIncomplete")


class Fill(_ZeroExModel):
    source: str
    proportion_bps: int = Field(alias="proportionBps")
    from_token: str | None = Field(None, alias="from")
    to_token: str | None = Field(None, alias="to")


class Route(_ZeroExModel):
    fills: list[Fill] = Field(default_factory=list)


class TokenTax(_ZeroExModel):
    buy_tax_bps: int | None = Field(None, alias="buyTaxBps")
    sell_tax_bps: int | None = Field(None, alias="sellTaxBps")


class TokenMetadata(_ZeroExModel):
    buy_token: TokenTax = Field(default_factory=TokenTax, alias="buyToken")
    sell_token: TokenTax = Field(default_factory=TokenTax, alias="sellToken")


class QuoteTransaction(_ZeroExModel):
    to: str
    data: str | None = None
    value: str | int | None = None
    gas: str | int | None = None
    gas_price: str | int | None = Field(None, alias="gasPrice")
    permit_signature_embedded: bool = Field(False, exclude=True)

    def as_fields(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "gas": self.gas,
            "gasPrice": self.gas_price,
        }


class Permit2Payload(_ZeroExModel):
    type: str | None = None
    hash: str | None = None
    eip712: dict[str, Any] | None = None


class SwapPrice(_ZeroExModel):
    """Indicative price. Carries no transaction and is never executed."""

    sell_token: str = Field(alias="sellToken")
    buy_token: str = Field(alias="buyToken")
    sell_amount: int = Field(alias="sellAmount")
    buy_amount: int = Field(alias="buyAmount")
    min_buy_amount: int | None = Field(None, alias="minBuyAmount")
    liquidity_available: bool = Field(True, alias="liquidityAvailable")
    issues: PriceIssues = Field(default_factory=PriceIssues)
    route: Route = Field(default_factory=Route)
    token_metadata: TokenMetadata | None = Field(None, alias="tokenMetadata")
    affiliate_fee_bps: int | None = Field(None, alias="affiliateFeeBps")
    trade_surplus: str | int | float | None = Field(None, alias="tradeSurplus")

    @property
    def allowance_issue(self) -> AllowanceIssue | None:
        return self.issues.allowance

    def route_breakdown(self) -> list[tuple[str, float]]:
        """Share of the trade routed through each liquidity source, in percent."""
        return [
            (fill.source, fill.proportion_bps * 100 / BPS_DENOMINATOR)
            for fill in self.route.fills
        ]

    def token_taxes(self) -> dict[str, float]:
        """Nonzero buy/sell taxes on either token, in percent."""
        if self.token_metadata is None:
            return {}
        taxes: dict[str, float] = {}
        for side, tax in (
            ("buy_token", self.token_metadata.buy_token),
            ("sell_token", self.token_metadata.sell_token),
        ):
            buy_pct = float(bps_to_percent(tax.buy_tax_bps))
            sell_pct = float(bps_to_percent(tax.sell_tax_bps))
            if buy_pct > 0 or sell_pct > 0:
                taxes[f"{side}_buy_tax"] = buy_pct
                taxes[f"{side}_sell_tax"] = sell_pct
        return taxes

    @property
    def affiliate_fee_percent(self) -> float:
        return float(bps_to_percent(self.affiliate_fee_bps))

    @property
    def has_trade_surplus(self) -> bool:
        try:
            return float(self.trade_surplus or 0) > 0
        except ValueError:
            return False


class SwapQuote(SwapPrice):
    """Firm quote. Valid only for the run that fetched it."""

    transaction: QuoteTransaction
    permit2: Permit2Payload | None = None

    @property
    def requires_permit_signature(self) -> bool:
        return self.permit2 is not None and self.permit2.eip712 is not None


class ZeroExClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        api_version: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or get_zero_ex_base_url()).rstrip("/")
        self.api_key = api_key
        self.api_version = api_version or get_zero_ex_api_version()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        )
        self.headers = {
            "Content-Type": "application/json",
        }

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def _request_headers(self) -> dict[str, str]:
        api_key = self.api_key or get_zero_ex_api_key()
        if not api_key:
            raise QuoteUnavailable("0x API key is not configured")
        return {
            **self.headers,
            ZERO_EX_API_KEY_HEADER: api_key,
            ZERO_EX_API_VERSION_HEADER: self.api_version,
        }

    async def _authed_request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"Making {method} request to {url}")
        start_time = time.time()

        try:
            resp = await self.client.request(
                method, url, headers=self._request_headers(), params=params
            )
        except httpx.RequestError as exc:
            raise QuoteUnavailable(f"Request to {url} failed: {exc}") from exc

        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )
            raise QuoteUnavailable(
                f"0x API returned HTTP {resp.status_code} for {endpoint}: {resp.text}",
                status_code=resp.status_code,
            )
        logger.debug(
            f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
        )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise QuoteUnavailable(f"0x API returned non-JSON body for {endpoint}") from exc
        if not isinstance(payload, dict):
            raise QuoteUnavailable(f"Unexpected 0x API payload for {endpoint}")
        return payload

    async def get_price(self, request: SwapRequest) -> SwapPrice:
        payload = await self._authed_request(
            "GET", ZERO_EX_ENDPOINTS["price"], params=request.to_query_params()
        )
        if payload.get("liquidityAvailable") is False:
            raise QuoteUnavailable("No liquidity available for the requested pair")
        try:
            return SwapPrice.model_validate(payload)
        except ValidationError as exc:
            raise QuoteUnavailable(f"Malformed 0x price response: {exc}") from exc

    async def get_quote(self, request: SwapRequest) -> SwapQuote:
        payload = await self._authed_request(
            "GET", ZERO_EX_ENDPOINTS["quote"], params=request.to_query_params()
        )
        transaction = payload.get("transaction")
        if not isinstance(transaction, dict) or not transaction.get("to"):
            raise QuoteUnavailable("0x quote response has no transaction")
        try:
            return SwapQuote.model_validate(payload)
        except ValidationError as exc:
            raise QuoteUnavailable(f"Malformed 0x quote response: {exc}") from exc

    async def get_liquidity_sources(self, chain_id: int) -> list[str]:
        payload = await self._authed_request(
            "GET", ZERO_EX_ENDPOINTS["sources"], params={"chainId": str(chain_id)}
        )
        sources = payload.get("sources") or {}
        if isinstance(sources, dict):
            return list(sources.keys())
        return [str(s) for s in sources]
