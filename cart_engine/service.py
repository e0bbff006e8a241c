import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import PricingPolicy, current_policy
from .errors import CatalogError
from .models import CartState, PricingSummary, Product
from .pricing import compute_summary, recommend
from .store import CartStore

logger = logging.getLogger("cart_engine.service")

SHIPPING_ROUTE = "/shipping"
LOGIN_ROUTE = "/login?redirect=" + SHIPPING_ROUTE


@dataclass(frozen=True)
class RecommendationResult:
    products: Tuple[Product, ...]
    stale: bool = False


class RecommendationFeed:
    """Pulls a catalog page and filters it against the cart.

    A failed fetch keeps serving the last page that loaded, flagged stale.
    """

    def __init__(self, catalog, limit: Optional[int] = None):
        self.catalog = catalog
        self.limit = current_policy().recommend_limit if limit is None else limit
        self._last_page: List[Product] = []

    def refresh(self, state: CartState) -> RecommendationResult:
        stale = False
        try:
            page = self.catalog.fetch(limit=self.limit)
            self._last_page = [p if isinstance(p, Product) else Product.from_dict(p) for p in page]
        except CatalogError as exc:
            stale = True
            logger.warning("catalog fetch failed, using last page (%s items): %s", len(self._last_page), exc)
        products = recommend(self._last_page, state, self.limit)
        return RecommendationResult(products=tuple(products), stale=stale)


@dataclass
class CheckoutHandoff:
    action: str  # "proceed", "login", "blocked"
    redirect: Optional[str] = None
    items: CartState = ()
    summary: Optional[PricingSummary] = None
    meta: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "action": self.action,
            "redirect": self.redirect,
            "items": [i.to_dict() for i in self.items],
            "summary": self.summary.to_dict() if self.summary else None,
            "meta": self.meta,
        }


def begin_checkout(store: CartStore, session_present: bool,
                   policy: Optional[PricingPolicy] = None) -> CheckoutHandoff:
    state = store.snapshot()
    if not state:
        logger.info("checkout blocked: cart is empty")
        return CheckoutHandoff(action="blocked")
    if not session_present:
        logger.info("checkout needs login, redirecting to %s", LOGIN_ROUTE)
        return CheckoutHandoff(action="login", redirect=LOGIN_ROUTE)
    summary = compute_summary(state, policy)
    handoff = CheckoutHandoff(action="proceed", redirect=SHIPPING_ROUTE, items=state, summary=summary)
    if store.unsaved:
        handoff.meta["unsaved"] = "true"
    return handoff


def print_summary(summary: PricingSummary) -> str:
    text = json.dumps(summary.to_dict(), ensure_ascii=False)
    print(text)
    return text
