from unittest.mock import AsyncMock, patch

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from scroll_paths.core.config import set_config
from scroll_paths.core.constants.chains import CHAIN_ID_SCROLL
from scroll_paths.core.errors import SigningFailed
from scroll_paths.core.utils.permit2 import normalize_typed_data
from scroll_paths.core.utils.test_permit2 import PERMIT_TYPED_DATA
from scroll_paths.core.utils.wallets import LocalWallet, make_random_wallet


@pytest.fixture
def wallet_info():
    return make_random_wallet()


def test_make_random_wallet(wallet_info):
    assert wallet_info["address"].startswith("0x")
    assert Account.from_key(wallet_info["private_key_hex"]).address == wallet_info["address"]


def test_key_without_prefix(wallet_info):
    wallet = LocalWallet(wallet_info["private_key_hex"].removeprefix("0x"))
    assert wallet.address == wallet_info["address"]


def test_invalid_key_rejected():
    with pytest.raises(SigningFailed):
        LocalWallet("0x1234")
    with pytest.raises(SigningFailed):
        LocalWallet("")


def test_from_config(wallet_info):
    set_config(
        {
            "wallets": [
                {
                    "label": "main",
                    "address": wallet_info["address"],
                    "private_key_hex": wallet_info["private_key_hex"],
                }
            ]
        }
    )

    assert LocalWallet.from_config("MAIN").address == wallet_info["address"]
    with pytest.raises(ValueError, match="not found"):
        LocalWallet.from_config("other")


def test_from_config_address_mismatch(wallet_info):
    set_config(
        {
            "wallets": [
                {
                    "label": "main",
                    "address": make_random_wallet()["address"],
                    "private_key_hex": wallet_info["private_key_hex"],
                }
            ]
        }
    )

    with pytest.raises(ValueError, match="does not match"):
        LocalWallet.from_config("main")


def test_sign_typed_data_recovers_signer(wallet_info):
    wallet = LocalWallet(wallet_info["private_key_hex"])
    typed = normalize_typed_data(PERMIT_TYPED_DATA)

    signature = wallet.sign_typed_data(typed)

    assert len(signature) == 65
    recovered = Account.recover_message(
        encode_typed_data(full_message=typed), signature=signature
    )
    assert recovered == wallet.address


def test_sign_typed_data_rejects_malformed_payload(wallet_info):
    wallet = LocalWallet(wallet_info["private_key_hex"])
    with pytest.raises(SigningFailed):
        wallet.sign_typed_data({"types": {}, "message": {}})


@pytest.mark.asyncio
async def test_signing_callback_returns_raw_transaction(wallet_info):
    wallet = LocalWallet(wallet_info["private_key_hex"])
    sign = wallet.signing_callback()

    raw = await sign(
        {
            "to": wallet.address,
            "value": 0,
            "gas": 21_000,
            "gasPrice": 1_000_000,
            "nonce": 0,
            "chainId": CHAIN_ID_SCROLL,
        }
    )

    assert isinstance(raw, bytes)
    assert len(raw) > 0


@pytest.mark.asyncio
async def test_get_nonce_uses_pending_account_nonce(wallet_info):
    wallet = LocalWallet(wallet_info["private_key_hex"])
    with patch(
        "scroll_paths.core.utils.wallets.get_account_nonce",
        new_callable=AsyncMock,
        return_value=9,
    ) as mock_nonce:
        assert await wallet.get_nonce(CHAIN_ID_SCROLL) == 9

    mock_nonce.assert_awaited_once_with(CHAIN_ID_SCROLL, wallet.address)
