"""Commission engine.

Turns one sale's financial fields into the dollar commission owed to the
salesperson who recorded it.  The pay plan has five independent pieces that
are summed, then split when the sale is shared:

    1. price tier       -- flat amount by sale price band
    2. accessories      -- New: per $900 of accessories above the $998
                           baseline (only once that extra reaches $900);
                           Used: per $800 of raw accessory price
    3. warranty         -- per full $1,000 of warranty profit
    4. maintenance      -- flat amount when the package is over $800
    5. pass-through     -- trade-in + manual bonus, added as entered

Usage:
    engine = CommissionEngine()           # or CommissionEngine(PayPlan(...))

    # Full breakdown, e.g. for the sale form preview
    result = engine.calc_sale(sale_in)

    # Just the number, e.g. inside a report rollup
    total = engine.commission(sale)

The engine reads attributes with getattr so it accepts the pydantic SaleIn,
the ORM Sale, or any attribute bag.  Missing / None / junk numbers count as
zero for the component they feed; nothing here raises.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from enum import Enum
from typing import Any

from .utils import parse_flag


ZERO = Decimal("0")
CENT = Decimal("0.01")
# Larger amounts are treated as bad input; keeps every sum quantizable to cents.
MAX_AMOUNT = Decimal("1e15")


class SaleType(str, Enum):
    NEW = "New"
    USED = "Used"


# ── Pay plan ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PriceTier:
    floor: Decimal
    amount: Decimal


def _tiers(*rows: tuple[int, int]) -> tuple[PriceTier, ...]:
    return tuple(PriceTier(Decimal(f), Decimal(a)) for f, a in rows)


@dataclass(frozen=True)
class PayPlan:
    """Immutable commission policy.

    Build a new one (or use dataclasses.replace) to try a different plan;
    the engine never reads module globals.
    """
    price_tiers: tuple[PriceTier, ...] = _tiers(
        (0, 200), (10000, 300), (20000, 400), (30000, 500),
    )

    new_accessory_baseline: Decimal = Decimal("998")
    used_accessory_baseline: Decimal = Decimal("498")
    new_accessory_threshold: Decimal = Decimal("900")
    new_accessory_step: Decimal = Decimal("900")
    used_accessory_step: Decimal = Decimal("800")
    accessory_bonus: Decimal = Decimal("100")

    warranty_step: Decimal = Decimal("1000")
    warranty_bonus: Decimal = Decimal("100")

    maintenance_threshold: Decimal = Decimal("800")
    maintenance_bonus: Decimal = Decimal("100")

    shared_divisor: Decimal = Decimal("2")

    def __post_init__(self):
        if self.shared_divisor <= 0:
            raise ValueError("shared_divisor must be positive")

    def accessory_baseline(self, sale_type) -> Decimal:
        if sale_type == SaleType.NEW:
            return self.new_accessory_baseline
        if sale_type == SaleType.USED:
            return self.used_accessory_baseline
        return ZERO

    def tier_for(self, sale_price: Decimal) -> PriceTier | None:
        """Highest tier whose floor is <= sale_price (lower bound inclusive)."""
        hit = None
        for tier in sorted(self.price_tiers, key=lambda t: t.floor):
            if sale_price >= tier.floor:
                hit = tier
        return hit


DEFAULT_PAYPLAN = PayPlan()


# ── Result container ─────────────────────────────────────────────────────────

@dataclass
class CommissionBreakdown:
    price_tier: Decimal = ZERO
    accessory: Decimal = ZERO
    warranty: Decimal = ZERO
    maintenance: Decimal = ZERO
    pass_through: Decimal = ZERO
    gross: Decimal = ZERO         # sum of the five components, unrounded
    shared: bool = False
    total: Decimal = ZERO         # one salesperson's share, rounded to cents


# ── Helpers ──────────────────────────────────────────────────────────────────

def to_decimal(value: Any) -> Decimal:
    """Best-effort money parse.  Anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        d = value
    else:
        s = str(value).replace("$", "").replace(",", "").strip()
        if not s:
            return ZERO
        try:
            d = Decimal(s)
        except (InvalidOperation, ValueError):
            return ZERO
    if not d.is_finite() or abs(d) >= MAX_AMOUNT:
        return ZERO
    return d


def _field(sale, name: str) -> Decimal:
    return to_decimal(getattr(sale, name, None))


def _steps(amount: Decimal, step: Decimal) -> Decimal:
    if step <= 0:
        return ZERO
    return (amount / step).to_integral_value(rounding=ROUND_FLOOR)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ── Engine ───────────────────────────────────────────────────────────────────

class CommissionEngine:
    """Stateless per-sale commission calculator bound to one PayPlan."""

    def __init__(self, plan: PayPlan | None = None):
        self.plan = plan or DEFAULT_PAYPLAN

    def calc_sale(self, sale) -> CommissionBreakdown:
        price_tier = self._price_tier(sale)
        accessory = self._accessory(sale)
        warranty = self._warranty(sale)
        maintenance = self._maintenance(sale)
        pass_through = _field(sale, "trade_in") + _field(sale, "bonus")

        gross = price_tier + accessory + warranty + maintenance + pass_through
        shared = parse_flag(getattr(sale, "shared", False))
        split = gross / self.plan.shared_divisor if shared else gross

        return CommissionBreakdown(
            price_tier=price_tier,
            accessory=accessory,
            warranty=warranty,
            maintenance=maintenance,
            pass_through=pass_through,
            gross=gross,
            shared=shared,
            total=round_money(split),
        )

    def commission(self, sale) -> Decimal:
        return self.calc_sale(sale).total

    def _price_tier(self, sale) -> Decimal:
        price = _field(sale, "sale_price")
        # No price entered yet: no tier, not the lowest one.
        if price <= 0:
            return ZERO
        tier = self.plan.tier_for(price)
        return tier.amount if tier else ZERO

    def _accessory(self, sale) -> Decimal:
        p = self.plan
        sale_type = getattr(sale, "sale_type", None)
        accessories = _field(sale, "accessory_price")

        if sale_type == SaleType.NEW:
            extra = max(ZERO, accessories - p.new_accessory_baseline)
            if extra < p.new_accessory_threshold:
                return ZERO
            return _steps(extra, p.new_accessory_step) * p.accessory_bonus

        if sale_type == SaleType.USED:
            # Used cars pay on the raw accessory price, not the extra.
            return max(ZERO, _steps(accessories, p.used_accessory_step) * p.accessory_bonus)

        return ZERO

    def _warranty(self, sale) -> Decimal:
        profit = _field(sale, "warranty_price") - _field(sale, "warranty_cost")
        if profit <= 0:
            return ZERO
        return _steps(profit, self.plan.warranty_step) * self.plan.warranty_bonus

    def _maintenance(self, sale) -> Decimal:
        if _field(sale, "maintenance_price") > self.plan.maintenance_threshold:
            return self.plan.maintenance_bonus
        return ZERO


def compute_commission(sale, plan: PayPlan | None = None) -> Decimal:
    """One salesperson's commission for one sale, rounded to cents."""
    return CommissionEngine(plan).commission(sale)
