"""Price breakdown returned by the pricing engine."""

from pydantic import BaseModel, Field


class PricedOption(BaseModel):
    option_id: int
    price: int


class PricingBreakdown(BaseModel):
    """Auditable price lines. Derived on demand, never the source of truth."""
    base_price: int
    options_total: int = 0
    resource_fee: int = 0
    nomination_fee: int = 0
    total: int
    options: list[PricedOption] = Field(default_factory=list)

    @property
    def resource_line(self) -> int:
        """Resource surcharge as shown to the customer: rate diff + nomination."""
        return self.resource_fee + self.nomination_fee
