from __future__ import annotations

from typing import Any

from eth_utils import to_checksum_address

from scroll_paths.core.adapters.BaseAdapter import BaseAdapter, require_wallet
from scroll_paths.core.adapters.decorators import status_tuple
from scroll_paths.core.adapters.models import SWAP
from scroll_paths.core.clients.ZeroExClient import (
    SwapPrice,
    SwapQuote,
    SwapRequest,
    ZeroExClient,
)
from scroll_paths.core.constants.base import (
    ADAPTER_ZERO_EX,
    BPS_DENOMINATOR,
    MAX_UINT256,
)
from scroll_paths.core.constants.chains import explorer_tx_url
from scroll_paths.core.constants.zero_ex import DEFAULT_AFFILIATE_FEE_BPS
from scroll_paths.core.errors import SlippageExceeded
from scroll_paths.core.utils.permit2 import (
    PermitEmbedded,
    apply_permit_embedding,
    sign_permit,
)
from scroll_paths.core.utils.tokens import AllowanceResult, ensure_allowance
from scroll_paths.core.utils.transaction import (
    account_lock,
    build_transaction_from_quote,
    submit_transaction,
)


class ZeroExAdapter(BaseAdapter):
    """Permit2 swaps through the 0x aggregator.

    One swap attempt runs price -> (approval) -> quote -> permit signature ->
    broadcast under the taker's account lock, so a second attempt for the same
    account cannot read the same nonce.
    """

    adapter_type = ADAPTER_ZERO_EX
    config_section = "zero_ex"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        signing_callback=None,
        sign_typed_data_callback=None,
        client: ZeroExClient | None = None,
    ) -> None:
        super().__init__("zero_ex_adapter", config, signing_callback)
        self.sign_typed_data_callback = sign_typed_data_callback
        self.client = client or ZeroExClient()

        zero_ex_cfg = self.settings
        fee = zero_ex_cfg.get("affiliate_fee_bps", DEFAULT_AFFILIATE_FEE_BPS)
        self.affiliate_fee_bps: int | None = int(fee) if fee is not None else None
        self.surplus_collection = bool(zero_ex_cfg.get("surplus_collection", True))
        self.affiliate_address: str | None = zero_ex_cfg.get("affiliate_address")
        # Unset means quotes are not checked against the indicative price.
        max_impact = zero_ex_cfg.get("max_price_impact_bps")
        self.max_price_impact_bps: int | None = (
            int(max_impact) if max_impact is not None else None
        )

    async def close(self) -> None:
        await self.client.close()

    def build_request(
        self,
        *,
        sell_token: str,
        buy_token: str,
        sell_amount: int,
        taker: str | None = None,
    ) -> SwapRequest:
        taker = taker or self.wallet_address
        if not taker:
            raise ValueError("taker address not configured")
        if int(sell_amount) <= 0:
            raise ValueError("sell_amount must be positive")
        return SwapRequest(
            chain_id=self.chain_id,
            sell_token=to_checksum_address(sell_token),
            buy_token=to_checksum_address(buy_token),
            sell_amount=int(sell_amount),
            taker=to_checksum_address(taker),
            affiliate_fee_bps=self.affiliate_fee_bps,
            surplus_collection=self.surplus_collection,
            affiliate_address=self.affiliate_address,
        )

    @status_tuple
    async def get_price(
        self, *, sell_token: str, buy_token: str, sell_amount: int
    ) -> SwapPrice:
        request = self.build_request(
            sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount
        )
        return await self.client.get_price(request)

    @status_tuple
    async def get_quote(
        self, *, sell_token: str, buy_token: str, sell_amount: int
    ) -> SwapQuote:
        request = self.build_request(
            sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount
        )
        return await self.client.get_quote(request)

    @status_tuple
    async def list_liquidity_sources(self, chain_id: int | None = None) -> list[str]:
        return await self.client.get_liquidity_sources(self.resolve_chain_id(chain_id))

    async def ensure_permit2_allowance(
        self, price: SwapPrice, request: SwapRequest
    ) -> AllowanceResult | None:
        issue = price.allowance_issue
        if issue is None:
            self.logger.info(f"{request.sell_token} is already authorized for Permit2")
            return None
        self.logger.info(
            f"Granting {issue.spender} permission to use {request.sell_token}"
        )
        return await ensure_allowance(
            token_address=request.sell_token,
            owner=request.taker,
            spender=issue.spender,
            amount=request.sell_amount,
            chain_id=request.chain_id,
            signing_callback=self.signing_callback,
            approval_amount=MAX_UINT256,
        )

    def check_price_impact(self, price: SwapPrice, quote: SwapQuote) -> None:
        if self.max_price_impact_bps is None or price.buy_amount <= 0:
            return
        shortfall = price.buy_amount - quote.buy_amount
        if shortfall <= 0:
            return
        impact_bps = shortfall * BPS_DENOMINATOR // price.buy_amount
        if impact_bps > self.max_price_impact_bps:
            raise SlippageExceeded(
                f"Quote buys {quote.buy_amount}, {impact_bps} bps below the indicative "
                f"{price.buy_amount} (limit {self.max_price_impact_bps} bps)"
            )

    async def execute_swap(
        self,
        *,
        sell_token: str,
        buy_token: str,
        sell_amount: int,
        taker: str | None = None,
    ) -> dict[str, Any]:
        request = self.build_request(
            sell_token=sell_token,
            buy_token=buy_token,
            sell_amount=sell_amount,
            taker=taker,
        )

        async with account_lock(request.chain_id, request.taker):
            price = await self.client.get_price(request)
            self.logger.info(
                f"Price for {request.sell_amount} {request.sell_token}: {price.buy_amount} {request.buy_token}"
            )
            allowance = await self.ensure_permit2_allowance(price, request)

            quote = await self.client.get_quote(request)
            self.check_price_impact(price, quote)

            embedding = await sign_permit(quote, self.sign_typed_data_callback)
            quote = apply_permit_embedding(quote, embedding)
            permit_signed = isinstance(embedding, PermitEmbedded)

            tx = build_transaction_from_quote(
                quote.transaction.as_fields(),
                chain_id=request.chain_id,
                from_address=request.taker,
            )
            txn_hash = await submit_transaction(tx, self.signing_callback)

        self.logger.info(f"Swap broadcast: tx={txn_hash}")
        approval_hash = allowance.approval_tx_hash if allowance else None
        operation = SWAP(
            adapter=self.adapter_type,
            sell_token=request.sell_token,
            buy_token=request.buy_token,
            sell_amount=str(quote.sell_amount),
            buy_amount=str(quote.buy_amount),
            approval_transaction_hash=approval_hash,
            permit_signed=permit_signed,
            affiliate_fee_bps=quote.affiliate_fee_bps,
            trade_surplus=(
                str(quote.trade_surplus) if quote.trade_surplus is not None else None
            ),
            transaction_hash=txn_hash,
            transaction_chain_id=request.chain_id,
        )
        return {
            "tx_hash": txn_hash,
            "approval_tx_hash": approval_hash,
            "explorer_url": explorer_tx_url(request.chain_id, txn_hash),
            "route": quote.route_breakdown(),
            "token_taxes": quote.token_taxes(),
            "operation": operation.model_dump(mode="json"),
        }

    @require_wallet
    @status_tuple
    async def swap(
        self, *, sell_token: str, buy_token: str, sell_amount: int
    ) -> dict[str, Any]:
        return await self.execute_swap(
            sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount
        )
