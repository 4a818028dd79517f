from __future__ import annotations

import argparse
import asyncio

from loguru import logger

from scroll_paths.adapters.zero_ex_adapter.adapter import ZeroExAdapter
from scroll_paths.core.config import get_rpc_urls, load_config, set_rpc_urls
from scroll_paths.core.constants.chains import CHAIN_CODE_TO_ID, CHAIN_ID_SCROLL
from scroll_paths.core.constants.contracts import SCROLL_WETH, SCROLL_WSTETH
from scroll_paths.core.utils.tokens import get_token_balance, get_token_decimals
from scroll_paths.core.utils.units import from_erc20_raw, to_erc20_raw
from scroll_paths.core.utils.wallets import LocalWallet


async def run_swap(
    *,
    wallet: LocalWallet,
    chain_id: int,
    sell_token: str,
    buy_token: str,
    amount: str,
    affiliate_fee_bps: int,
    max_price_impact_bps: int | None,
) -> None:
    adapter = ZeroExAdapter(
        config={
            "strategy_wallet": {"address": wallet.address},
            "zero_ex": {
                "chain_id": chain_id,
                "affiliate_fee_bps": affiliate_fee_bps,
                "surplus_collection": True,
                "max_price_impact_bps": max_price_impact_bps,
            },
        },
        signing_callback=wallet.signing_callback(),
        sign_typed_data_callback=wallet.typed_data_callback(),
    )
    try:
        ok, sources = await adapter.list_liquidity_sources()
        if ok:
            logger.info(f"Liquidity sources: {', '.join(sources)}")
        else:
            logger.warning(f"Could not list liquidity sources: {sources}")

        sell_decimals, buy_decimals = await asyncio.gather(
            get_token_decimals(sell_token, chain_id),
            get_token_decimals(buy_token, chain_id),
        )
        sell_amount = to_erc20_raw(amount, sell_decimals)
        if sell_amount <= 0:
            raise SystemExit("Amount too small")

        before_buy = await get_token_balance(buy_token, chain_id, wallet.address)

        ok, price = await adapter.get_price(
            sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount
        )
        if not ok:
            raise SystemExit(f"Price unavailable: {price}")
        logger.info(
            f"Indicative price: {from_erc20_raw(price.sell_amount, sell_decimals)} -> "
            f"{from_erc20_raw(price.buy_amount, buy_decimals)}"
        )

        result = await adapter.execute_swap(
            sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount
        )

        for source, share in result["route"]:
            logger.info(f"{source}: {share:.2f}%")
        for name, pct in result["token_taxes"].items():
            logger.info(f"{name}: {pct:.2f}%")

        operation = result["operation"]
        fee_bps = operation.get("affiliate_fee_bps")
        if fee_bps:
            logger.info(f"Affiliate fee: {fee_bps / 100:.2f}%")
        surplus = operation.get("trade_surplus")
        if surplus and float(surplus) > 0:
            logger.info(f"Trade surplus collected: {surplus}")
        else:
            logger.info("No trade surplus collected")

        logger.info(f"Swap tx: {result['explorer_url'] or result['tx_hash']}")
        after_buy = await get_token_balance(buy_token, chain_id, wallet.address)
        logger.info(
            f"Buy token balance (pending): {from_erc20_raw(before_buy, buy_decimals)} -> "
            f"{from_erc20_raw(after_buy, buy_decimals)}"
        )
    finally:
        await adapter.close()


def _parse_chain(value: str) -> int:
    code = value.strip().lower()
    if code in CHAIN_CODE_TO_ID:
        return CHAIN_CODE_TO_ID[code]
    try:
        return int(code)
    except ValueError:
        raise SystemExit(f"Unknown chain: {value}") from None


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Swap through the 0x aggregator using a Permit2 signature."
    )
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--chain", type=str, default=str(CHAIN_ID_SCROLL), help="Chain id or code (e.g. scroll)")
    parser.add_argument("--rpc-url", type=str, default=None, help="Override the configured RPC for the chain")
    parser.add_argument("--wallet-label", type=str, default="main")
    parser.add_argument("--sell-token", type=str, default=SCROLL_WETH)
    parser.add_argument("--buy-token", type=str, default=SCROLL_WSTETH)
    parser.add_argument("--amount", type=str, default="0.1", help="Human amount (e.g. 0.1 WETH)")
    parser.add_argument("--affiliate-fee-bps", type=int, default=100)
    parser.add_argument("--max-price-impact-bps", type=int, default=None)
    parser.add_argument("--confirm-live", action="store_true", help="Actually broadcast to the real RPC")
    args = parser.parse_args()

    load_config(args.config, require_exists=True)
    chain_id = _parse_chain(args.chain)
    if args.rpc_url:
        set_rpc_urls({**get_rpc_urls(), str(chain_id): [args.rpc_url]})
    wallet = LocalWallet.from_config(args.wallet_label)

    if not args.confirm_live:
        raise SystemExit("Refusing to broadcast to live RPC without --confirm-live")

    asyncio.run(
        run_swap(
            wallet=wallet,
            chain_id=chain_id,
            sell_token=args.sell_token,
            buy_token=args.buy_token,
            amount=args.amount,
            affiliate_fee_bps=args.affiliate_fee_bps,
            max_price_impact_bps=args.max_price_impact_bps,
        )
    )


if __name__ == "__main__":
    main()
