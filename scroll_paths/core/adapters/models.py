from typing import Literal

from pydantic import BaseModel, Field


class OperationBase(BaseModel):
    adapter: str = "unknown"
    transaction_hash: str | None = None
    transaction_chain_id: int | None = None


class SWAP(OperationBase):
    type: Literal["SWAP"] = "SWAP"
    sell_token: str
    buy_token: str
    sell_amount: str
    buy_amount: str
    approval_transaction_hash: str | None = None
    permit_signed: bool = False
    affiliate_fee_bps: int | None = None
    trade_surplus: str | None = None


class LEND(OperationBase):
    type: Literal["LEND"] = "LEND"
    token_address: str
    pool_address: str
    amount: str
    on_behalf_of: str
    transaction_hashes: dict[str, str | None] = Field(default_factory=dict)


class UNLEND(OperationBase):
    type: Literal["UNLEND"] = "UNLEND"
    token_address: str
    receipt_token_address: str
    pool_address: str
    amount: str
    recipient: str
    transaction_hashes: dict[str, str | None] = Field(default_factory=dict)

