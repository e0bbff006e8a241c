import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .models import to_cents, to_decimal

logger = logging.getLogger("cart_engine.config")

SHIPPING_FREE_THRESHOLD = 1000
SHIPPING_FLAT_FEE = 100
TAX_RATE = "0.18"
RECOMMEND_LIMIT = 4

ENV_OVERRIDES = {
    "CART_SHIPPING_FREE_THRESHOLD": "shipping_free_threshold",
    "CART_SHIPPING_FLAT_FEE": "shipping_flat_fee",
    "CART_TAX_RATE": "tax_rate",
    "CART_RECOMMEND_LIMIT": "recommend_limit",
}


@dataclass(frozen=True)
class PricingPolicy:
    free_threshold_cents: int = SHIPPING_FREE_THRESHOLD * 100
    flat_fee_cents: int = SHIPPING_FLAT_FEE * 100
    tax_rate: Decimal = Decimal(TAX_RATE)
    recommend_limit: int = RECOMMEND_LIMIT

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PricingPolicy":
        known = set(ENV_OVERRIDES.values())
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown policy keys: {sorted(unknown)}")
        try:
            policy = cls(
                free_threshold_cents=to_cents(data.get("shipping_free_threshold", SHIPPING_FREE_THRESHOLD)),
                flat_fee_cents=to_cents(data.get("shipping_flat_fee", SHIPPING_FLAT_FEE)),
                tax_rate=to_decimal(data.get("tax_rate", TAX_RATE)),
                recommend_limit=int(data.get("recommend_limit", RECOMMEND_LIMIT)),
            )
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ConfigError(f"invalid policy value: {exc}") from exc
        policy.validate()
        return policy

    def validate(self) -> None:
        if self.free_threshold_cents < 0:
            raise ConfigError("shipping_free_threshold must be >= 0")
        if self.flat_fee_cents < 0:
            raise ConfigError("shipping_flat_fee must be >= 0")
        if not (0 <= self.tax_rate <= 1):
            raise ConfigError(f"tax_rate must be within [0, 1], got {self.tax_rate}")
        if self.recommend_limit < 0:
            raise ConfigError("recommend_limit must be >= 0")


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read policy file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"malformed policy file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"policy file {path} must hold a mapping")
    # a file may nest the values under a "pricing" section
    return dict(data.get("pricing", data))


def load_policy(path: Optional[str] = None) -> PricingPolicy:
    """Resolve the pricing policy.

    Defaults first, then the YAML file named by ``path`` or the
    ``CART_POLICY_FILE`` environment variable, then ``CART_*`` environment
    overrides. The environment is read on every call.
    """
    values: Dict[str, Any] = {}
    path = path or os.environ.get("CART_POLICY_FILE")
    if path:
        values.update(_read_yaml(path))
        logger.debug("policy file loaded: %s", path)
    for env_key, name in ENV_OVERRIDES.items():
        raw = os.environ.get(env_key)
        if raw:
            values[name] = raw
            logger.debug("policy override %s=%s", env_key, raw)
    return PricingPolicy.from_mapping(values)


_resolved: Dict[Tuple[Optional[str], ...], PricingPolicy] = {}


def current_policy() -> PricingPolicy:
    """The pricing policy for the current environment, resolved once.

    The policy file is parsed only the first time a given set of ``CART_*``
    variables is seen; later calls reuse that result.
    """
    key = tuple(os.environ.get(k) for k in ("CART_POLICY_FILE",) + tuple(ENV_OVERRIDES))
    policy = _resolved.get(key)
    if policy is None:
        policy = _resolved[key] = load_policy()
    return policy


def reset_policy_cache() -> None:
    _resolved.clear()
