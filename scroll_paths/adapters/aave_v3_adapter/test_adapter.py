from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scroll_paths.adapters.aave_v3_adapter.adapter import AaveV3Adapter
from scroll_paths.core.constants.aave_v3_abi import RESERVE_DATA_KEYS
from scroll_paths.core.constants.base import MAX_UINT256, ZERO_ADDRESS
from scroll_paths.core.constants.chains import CHAIN_ID_SCROLL
from scroll_paths.core.constants.contracts import AAVE_V3_POOL_BY_CHAIN, SCROLL_USDC
from scroll_paths.core.errors import ReserveNotFound
from scroll_paths.core.utils.tokens import AllowanceResult
from scroll_paths.core.utils.transaction import TransactionRevertedError

CUSTODY = "0x1234567890123456789012345678901234567890"
CALLER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
A_USDC = "0x0000000000000000000000000000000000005001"
POOL = AAVE_V3_POOL_BY_CHAIN[CHAIN_ID_SCROLL]

ADAPTER_MODULE = "scroll_paths.adapters.aave_v3_adapter.adapter"


def build_reserve(a_token: str) -> tuple:
    base = dict.fromkeys(RESERVE_DATA_KEYS, 0)
    base["aTokenAddress"] = a_token
    return tuple(base[k] for k in RESERVE_DATA_KEYS)


def mock_pool_web3(*reserves):
    get_reserve_data = MagicMock(
        return_value=MagicMock(call=AsyncMock(side_effect=list(reserves)))
    )
    pool = MagicMock()
    pool.functions.getReserveData = get_reserve_data
    web3 = MagicMock()
    web3.eth.contract = MagicMock(return_value=pool)

    @asynccontextmanager
    async def mock_web3_ctx(_chain_id):
        yield web3

    return mock_web3_ctx, get_reserve_data


@pytest.fixture
def adapter():
    return AaveV3Adapter(
        config={"strategy_wallet": {"address": CUSTODY}},
        signing_callback=AsyncMock(),
    )


@pytest.fixture
def tx_mocks():
    with (
        patch(f"{ADAPTER_MODULE}.build_transfer_from_transaction", new_callable=AsyncMock) as build_pull,
        patch(f"{ADAPTER_MODULE}.ensure_allowance", new_callable=AsyncMock) as allowance,
        patch(f"{ADAPTER_MODULE}.encode_call", new_callable=AsyncMock) as encode,
        patch(f"{ADAPTER_MODULE}.send_transaction", new_callable=AsyncMock) as send,
    ):
        build_pull.side_effect = lambda **kw: {"kind": "transferFrom", **kw}
        allowance.return_value = AllowanceResult(
            already_sufficient=False, approval_tx_hash="0xapprove"
        )
        encode.side_effect = lambda **kw: {"kind": kw["fn_name"], **kw}
        send.side_effect = lambda tx, _cb: f"0x{tx['kind']}"
        yield build_pull, allowance, encode, send


class TestAaveV3Adapter:
    def test_adapter_type(self, adapter):
        assert adapter.adapter_type == "AAVE_V3"

    def test_wallet_optional(self):
        adapter = AaveV3Adapter(config={})
        assert adapter.wallet_address is None
        assert adapter.chain_id == CHAIN_ID_SCROLL

    def test_pool_override(self):
        adapter = AaveV3Adapter(config={}, pool_address=CALLER.lower())
        assert adapter._pool(CHAIN_ID_SCROLL) == CALLER

    def test_unsupported_chain(self, adapter):
        with pytest.raises(ValueError, match="Unsupported"):
            adapter._pool(10)

    @pytest.mark.asyncio
    async def test_get_reserve_token(self, adapter):
        ctx, get_reserve_data = mock_pool_web3(build_reserve(A_USDC))

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            token = await adapter.get_reserve_token(asset=SCROLL_USDC)

        assert token == A_USDC
        get_reserve_data.assert_called_once_with(SCROLL_USDC)

    @pytest.mark.asyncio
    async def test_get_reserve_token_reads_pool_every_call(self, adapter):
        other = "0x" + "ab" * 20
        ctx, get_reserve_data = mock_pool_web3(build_reserve(A_USDC), build_reserve(other))

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            first = await adapter.get_reserve_token(asset=SCROLL_USDC)
            second = await adapter.get_reserve_token(asset=SCROLL_USDC)

        assert first == A_USDC
        assert second.lower() == other
        assert get_reserve_data.call_count == 2

    @pytest.mark.asyncio
    async def test_get_reserve_token_missing_reserve(self, adapter):
        ctx, _ = mock_pool_web3(build_reserve(ZERO_ADDRESS))

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            with pytest.raises(ReserveNotFound) as exc_info:
                await adapter.get_reserve_token(asset=SCROLL_USDC)

        assert exc_info.value.pool == POOL
        assert exc_info.value.retryable is False


@pytest.mark.asyncio
class TestStake:
    async def test_stake_pulls_approves_then_supplies(self, adapter, tx_mocks):
        build_pull, allowance, encode, send = tx_mocks

        ok, result = await adapter.stake(asset=SCROLL_USDC, amount=500, caller=CALLER)

        assert ok is True
        build_pull.assert_awaited_once_with(
            from_address=CUSTODY,
            chain_id=CHAIN_ID_SCROLL,
            token_address=SCROLL_USDC,
            owner_address=CALLER,
            recipient_address=CUSTODY,
            amount=500,
        )
        allowance_kwargs = allowance.await_args.kwargs
        assert allowance_kwargs["token_address"] == SCROLL_USDC
        assert allowance_kwargs["owner"] == CUSTODY
        assert allowance_kwargs["spender"] == POOL
        assert allowance_kwargs["amount"] == 500
        assert allowance_kwargs["approval_amount"] == MAX_UINT256

        encode.assert_awaited_once()
        assert encode.await_args.kwargs["fn_name"] == "supply"
        assert encode.await_args.kwargs["target"] == POOL
        assert encode.await_args.kwargs["args"] == [SCROLL_USDC, 500, CALLER, 0]

        assert [c.args[0]["kind"] for c in send.await_args_list] == [
            "transferFrom",
            "supply",
        ]
        assert result["type"] == "LEND"
        assert result["on_behalf_of"] == CALLER
        assert result["transaction_hash"] == "0xsupply"
        assert result["transaction_hashes"] == {
            "pull_tx": "0xtransferFrom",
            "approve_tx": "0xapprove",
            "supply_tx": "0xsupply",
        }

    async def test_stake_on_behalf_of_other_account(self, adapter, tx_mocks):
        _, _, encode, _ = tx_mocks
        beneficiary = "0x" + "cd" * 20

        ok, _ = await adapter.stake(
            asset=SCROLL_USDC, amount=500, caller=CALLER, on_behalf_of=beneficiary
        )

        assert ok is True
        supply_args = encode.await_args.kwargs["args"]
        assert supply_args[2].lower() == beneficiary

    async def test_pull_revert_stops_sequence(self, adapter, tx_mocks):
        _, allowance, encode, send = tx_mocks
        send.side_effect = TransactionRevertedError("0xpull", {"status": 0})

        ok, msg = await adapter.stake(asset=SCROLL_USDC, amount=500, caller=CALLER)

        assert ok is False
        assert "0xpull" in msg
        allowance.assert_not_called()
        encode.assert_not_called()

    async def test_stake_rejects_zero_amount(self, adapter, tx_mocks):
        build_pull, _, _, _ = tx_mocks

        ok, msg = await adapter.stake(asset=SCROLL_USDC, amount=0, caller=CALLER)

        assert ok is False
        assert "positive" in msg
        build_pull.assert_not_called()

    async def test_stake_requires_wallet(self, tx_mocks):
        adapter = AaveV3Adapter(config={})

        ok, msg = await adapter.stake(asset=SCROLL_USDC, amount=500, caller=CALLER)

        assert ok is False
        assert msg == "wallet address not configured"


@pytest.mark.asyncio
class TestUnstake:
    async def test_unstake_pulls_receipt_token_then_withdraws(self, adapter, tx_mocks):
        build_pull, allowance, encode, _ = tx_mocks
        ctx, _ = mock_pool_web3(build_reserve(A_USDC))

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            ok, result = await adapter.unstake(asset=SCROLL_USDC, amount=500, caller=CALLER)

        assert ok is True
        assert build_pull.await_args.kwargs["token_address"] == A_USDC
        assert build_pull.await_args.kwargs["owner_address"] == CALLER
        assert allowance.await_args.kwargs["token_address"] == A_USDC
        assert allowance.await_args.kwargs["spender"] == POOL
        assert encode.await_args.kwargs["fn_name"] == "withdraw"
        assert encode.await_args.kwargs["args"] == [SCROLL_USDC, 500, CALLER]
        assert result["type"] == "UNLEND"
        assert result["receipt_token_address"] == A_USDC
        assert result["transaction_hash"] == "0xwithdraw"

    async def test_unstake_to_recipient(self, adapter, tx_mocks):
        _, _, encode, _ = tx_mocks
        ctx, _ = mock_pool_web3(build_reserve(A_USDC))
        recipient = "0x" + "ef" * 20

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            ok, result = await adapter.unstake(
                asset=SCROLL_USDC, amount=500, caller=CALLER, to=recipient
            )

        assert ok is True
        assert encode.await_args.kwargs["args"][2].lower() == recipient
        assert result["recipient"].lower() == recipient

    async def test_missing_reserve_attempts_no_transfer(self, adapter, tx_mocks):
        build_pull, allowance, encode, send = tx_mocks
        ctx, _ = mock_pool_web3(build_reserve(ZERO_ADDRESS))

        with patch(f"{ADAPTER_MODULE}.web3_utils.web3_from_chain_id", ctx):
            ok, msg = await adapter.unstake(asset=SCROLL_USDC, amount=500, caller=CALLER)

        assert ok is False
        assert "No reserve configured" in msg
        build_pull.assert_not_called()
        allowance.assert_not_called()
        encode.assert_not_called()
        send.assert_not_called()


@pytest.mark.asyncio
class TestLend:
    async def test_lend_supplies_from_custody(self, adapter, tx_mocks):
        build_pull, allowance, encode, _ = tx_mocks

        ok, txn_hash = await adapter.lend(underlying_token=SCROLL_USDC, qty=1_000)

        assert ok is True
        assert txn_hash == "0xsupply"
        build_pull.assert_not_called()
        assert allowance.await_args.kwargs["owner"] == CUSTODY
        assert encode.await_args.kwargs["args"] == [SCROLL_USDC, 1_000, CUSTODY, 0]

    async def test_unlend_full_withdraws_max(self, adapter, tx_mocks):
        _, _, encode, _ = tx_mocks

        ok, txn_hash = await adapter.unlend(
            underlying_token=SCROLL_USDC, qty=0, withdraw_full=True
        )

        assert ok is True
        assert txn_hash == "0xwithdraw"
        assert encode.await_args.kwargs["args"] == [SCROLL_USDC, MAX_UINT256, CUSTODY]
