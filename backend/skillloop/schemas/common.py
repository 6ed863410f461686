"""Shared schema pieces — wallet address field and ORM-backed base model."""

from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

WALLET_PATTERN = r"^0x[0-9a-fA-F]{40}$"

Wallet = Annotated[
    str,
    Field(pattern=WALLET_PATTERN),
    AfterValidator(lambda v: v.lower()),
]


class OrmResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
