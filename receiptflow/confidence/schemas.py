from pydantic import Field

from receiptflow.common.schemas import AppBaseModel


class ConfidenceSummary(AppBaseModel):
    """Per-field trust scores for one extraction, used for verification prompts."""
    overall: float = Field(default=0.0, ge=0.0, le=1.0, description="Mean of the available merchant/total/date scores")
    line_items: float = Field(default=0.0, ge=0.0, le=1.0, description="Mean line item confidence")
    total: float = Field(default=0.0, ge=0.0, le=1.0)
    date: float = Field(default=0.0, ge=0.0, le=1.0)
    merchant: float = Field(default=0.0, ge=0.0, le=1.0)
