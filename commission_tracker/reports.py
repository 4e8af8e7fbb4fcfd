"""Period rollups over stored sales.

Commission is recomputed per sale through the CommissionEngine; a stored or
client-supplied commission figure is never trusted here.
"""

from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from typing import Iterable

from .payplan import CommissionEngine, ZERO, round_money, to_decimal
from .utils import parse_flag


logger = logging.getLogger("reports")


# ── Result containers ────────────────────────────────────────────────────────

@dataclass
class MonthStats:
    total_sales: Decimal = ZERO
    total_commission: Decimal = ZERO
    number_of_sales: int = 0
    shared_sales: int = 0
    accessory_sales: Decimal = ZERO


@dataclass
class MonthReport:
    current: MonthStats
    previous: MonthStats
    change: dict[str, float] = field(default_factory=dict)


@dataclass
class SalespersonStats:
    salesperson_id: str = ""
    number_of_sales: int = 0
    shared_sales: int = 0
    total_sales: Decimal = ZERO
    total_commission: Decimal = ZERO


# ── Helpers ──────────────────────────────────────────────────────────────────

def pct_change(current, previous) -> float:
    """Month-over-month change in percent.

    From zero, any positive value counts as +100% and zero stays 0%.
    """
    cur, prev = float(current), float(previous)
    if prev == 0:
        return 100.0 if cur > 0 else 0.0
    return round((cur - prev) / prev * 100.0, 2)


# ── Rollups ──────────────────────────────────────────────────────────────────

def calc_month_stats(sales: Iterable, engine: CommissionEngine | None = None) -> MonthStats:
    engine = engine or CommissionEngine()
    stats = MonthStats()
    for s in sales:
        stats.total_sales += to_decimal(getattr(s, "sale_price", None))
        stats.accessory_sales += to_decimal(getattr(s, "accessory_price", None))
        stats.total_commission += engine.commission(s)
        stats.number_of_sales += 1
        if parse_flag(getattr(s, "shared", False)):
            stats.shared_sales += 1
    stats.total_commission = round_money(stats.total_commission)
    return stats


def build_month_report(current: MonthStats, previous: MonthStats) -> MonthReport:
    change = {
        f.name: pct_change(getattr(current, f.name), getattr(previous, f.name))
        for f in fields(MonthStats)
    }
    return MonthReport(current=current, previous=previous, change=change)


def calc_salesperson_stats(sales: Iterable, engine: CommissionEngine | None = None) -> list[SalespersonStats]:
    """Per-salesperson totals, highest commission first.

    A shared sale counts once for the salesperson who recorded it, at the
    halved amount; the counterpart's half is booked on their own record.
    """
    engine = engine or CommissionEngine()
    by_sp: dict[str, SalespersonStats] = {}
    for s in sales:
        sp_id = getattr(s, "salesperson_id", "") or ""
        row = by_sp.setdefault(sp_id, SalespersonStats(salesperson_id=sp_id))
        row.number_of_sales += 1
        row.total_sales += to_decimal(getattr(s, "sale_price", None))
        row.total_commission += engine.commission(s)
        if parse_flag(getattr(s, "shared", False)):
            row.shared_sales += 1

    if "" in by_sp:
        logger.warning(f"{by_sp[''].number_of_sales} sale(s) have no salesperson")
    return sorted(by_sp.values(), key=lambda r: (-r.total_commission, r.salesperson_id))


@dataclass
class VehicleCount:
    vehicle: str
    count: int


@dataclass
class DailySales:
    day: date
    number_of_sales: int = 0
    total_sales: Decimal = ZERO
    total_commission: Decimal = ZERO


def calc_vehicle_popularity(sales: Iterable, limit: int = 10) -> list[VehicleCount]:
    """Most sold make/model pairs, top `limit`.  Sales with neither are skipped."""
    counts = Counter(
        f"{getattr(s, 'make', '') or ''} {getattr(s, 'model', '') or ''}".strip()
        for s in sales
    )
    counts.pop("", None)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [VehicleCount(vehicle=v, count=n) for v, n in ranked[:limit]]


def calc_daily_trend(sales: Iterable, engine: CommissionEngine | None = None) -> list[DailySales]:
    """Sales per calendar day, oldest first.  Undated sales are left out."""
    engine = engine or CommissionEngine()
    by_day: dict[date, DailySales] = {}
    for s in sales:
        day = getattr(s, "sold_date", None)
        if day is None:
            continue
        row = by_day.setdefault(day, DailySales(day=day))
        row.number_of_sales += 1
        row.total_sales += to_decimal(getattr(s, "sale_price", None))
        row.total_commission += engine.commission(s)
    return [by_day[d] for d in sorted(by_day)]
