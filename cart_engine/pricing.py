import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Mapping, Optional, Union

from .config import PricingPolicy, current_policy
from .models import Amount, CartState, PricingSummary, Product, from_cents, to_cents

logger = logging.getLogger("cart_engine.pricing")

CatalogEntry = Union[Product, Mapping]


def calculate_subtotal(state: CartState) -> int:
    subtotal = sum(i.line_total_cents for i in state)
    logger.info("subtotal=%s", from_cents(subtotal))
    return subtotal


def shipping_fee(subtotal_cents: int, policy: PricingPolicy) -> int:
    if subtotal_cents > policy.free_threshold_cents:
        return 0
    return policy.flat_fee_cents


def apply_tax(subtotal_cents: int, policy: PricingPolicy) -> int:
    tax = (Decimal(subtotal_cents) * policy.tax_rate).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(tax)


def compute_summary(state: CartState, policy: Optional[PricingPolicy] = None) -> PricingSummary:
    policy = policy or current_policy()
    subtotal = calculate_subtotal(state)
    shipping = shipping_fee(subtotal, policy)
    tax = apply_tax(subtotal, policy)
    summary = PricingSummary(
        subtotal_cents=subtotal,
        shipping_cents=shipping,
        tax_cents=tax,
        total_cents=subtotal + shipping + tax,
        item_count=sum(i.quantity for i in state),
    )
    logger.debug("summary computed: %s", summary)
    return summary


def free_shipping_gap(subtotal: Amount, policy: Optional[PricingPolicy] = None) -> float:
    policy = policy or current_policy()
    gap = policy.free_threshold_cents - to_cents(subtotal)
    return from_cents(max(0, gap))


def free_shipping_message(summary: PricingSummary, policy: Optional[PricingPolicy] = None) -> Optional[str]:
    if summary.free_shipping:
        return None
    gap = free_shipping_gap(summary.subtotal, policy)
    return f"Add items worth {gap:.2f} more to get free shipping!"


def recommend(catalog_page: Iterable[CatalogEntry], state: CartState,
              limit: Optional[int] = None) -> List[Product]:
    """Catalog products not already in the cart, in catalog order.

    The catalog ranks its page; the order is kept as-is and only the first
    ``limit`` survivors are returned.
    """
    if limit is None:
        limit = current_policy().recommend_limit
    if limit <= 0:
        return []
    in_cart = {i.product_id for i in state}
    picked: List[Product] = []
    for entry in catalog_page:
        product = entry if isinstance(entry, Product) else Product.from_dict(entry)
        if product.product_id in in_cart:
            continue
        picked.append(product)
        if len(picked) >= limit:
            break
    return picked
