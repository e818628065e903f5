"""
Pricing engine.

Totals are computed in integer currency units. Fractional intermediate
values truncate toward zero and negative sums are clamped to zero only at
the very end.

Example:
    base 3000 + option 500 + (60 min * 1000/h) + nomination 300 = 4800
"""

import logging
from typing import Iterable, Optional

from reservation_core.schemas.menu_schema import Menu
from reservation_core.schemas.pricing_schema import PricedOption, PricingBreakdown
from reservation_core.schemas.resource_schema import Resource

logger = logging.getLogger(__name__)


def resource_fee(menu: Menu, resource: Optional[Resource]) -> int:
    """Hourly surcharge of the resource over the menu's service time."""
    if resource is None:
        return 0
    minutes_rate = menu.base_duration * resource.hourly_rate_diff
    # Integer division truncating toward zero, exact for any rate sign
    fee = abs(minutes_rate) // 60
    return fee if minutes_rate >= 0 else -fee


def nomination_fee(resource: Optional[Resource]) -> int:
    if resource is None or resource.nomination_fee <= 0:
        return 0
    return resource.nomination_fee


def compute_price(
    menu: Menu,
    option_ids: Iterable[int] = (),
    resource: Optional[Resource] = None,
) -> PricingBreakdown:
    """
    Price a menu with selected options and an optional resource.

    Options that do not belong to ``menu`` are ignored; they are validated
    by the caller.
    """
    selected = set(option_ids)
    priced = [
        PricedOption(option_id=option.id, price=option.price)
        for option in menu.options
        if option.id in selected and option.menu_id == menu.id
    ]
    ignored = selected - {p.option_id for p in priced}
    if ignored:
        logger.debug("Ignoring options %s not offered by menu %s", sorted(ignored), menu.id)

    options_total = sum(p.price for p in priced)
    fee = resource_fee(menu, resource)
    nomination = nomination_fee(resource)
    total = max(0, int(menu.base_price + options_total + fee + nomination))

    return PricingBreakdown(
        base_price=menu.base_price,
        options_total=options_total,
        resource_fee=fee,
        nomination_fee=nomination,
        total=total,
        options=priced,
    )
