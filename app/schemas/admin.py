from pydantic import BaseModel, Field


class FeeSettingsIn(BaseModel):
    # None resets to the env default
    platform_fee_percent: int | None = Field(None, ge=0, le=100)


class FeeSettingsOut(BaseModel):
    platform_fee_percent: int
    is_default: bool
    updated_at: str | None = None
