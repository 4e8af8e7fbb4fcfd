from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from .payplan import CommissionBreakdown, SaleType, to_decimal
from .utils import parse_date, parse_flag


# Loose spellings seen from the sale form, the sales table and CSV exports,
# mapped onto the canonical field names.
_ALIASES = {
    "salePrice": "sale_price",
    "saleType": "sale_type",
    "type": "sale_type",
    "new_used": "sale_type",
    "accessoryPrice": "accessory_price",
    "warrantyPrice": "warranty_price",
    "warrantyCost": "warranty_cost",
    "maintenancePrice": "maintenance_price",
    "maintenanceCost": "maintenance_cost",
    "tradeIn": "trade_in",
    "date": "sold_date",
    "soldDate": "sold_date",
    "stockNumber": "stock_number",
    "stock_num": "stock_number",
    "salespersonId": "salesperson_id",
    "sharedWith": "shared_with",
    "shared_with_email": "shared_with",
    "sharedWithEmail": "shared_with",
    "shared_with_salesperson_id": "shared_with",
    "sharedWithSalespersonId": "shared_with",
    "firstName": "first_name",
    "lastName": "last_name",
}

MONEY_FIELDS = (
    "sale_price", "accessory_price", "warranty_price", "warranty_cost",
    "maintenance_price", "maintenance_cost", "trade_in", "bonus",
)
TEXT_FIELDS = (
    "stock_number", "salesperson_id", "shared_with",
    "first_name", "last_name", "make", "model", "vin",
)


def _sale_type(v) -> SaleType | str:
    if isinstance(v, SaleType):
        return v
    s = str(v or "").strip()
    for t in SaleType:
        if s.lower() == t.value.lower():
            return t
    return s


def _year(v) -> int | None:
    try:
        return int(str(v).strip()) if v not in (None, "") else None
    except ValueError:
        return None


class SaleIn(BaseModel):
    """Canonical sale record.  Everything the commission engine reads is here,
    plus the descriptive fields the sales table stores alongside it."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    sold_date: date | None = None
    stock_number: str = ""
    salesperson_id: str = ""

    sale_type: SaleType | str = ""
    sale_price: Decimal = Decimal("0")
    accessory_price: Decimal = Decimal("0")
    warranty_price: Decimal = Decimal("0")
    warranty_cost: Decimal = Decimal("0")
    maintenance_price: Decimal = Decimal("0")
    maintenance_cost: Decimal = Decimal("0")
    trade_in: Decimal = Decimal("0")
    bonus: Decimal = Decimal("0")

    shared: bool = False
    shared_with: str = ""

    first_name: str = ""
    last_name: str = ""
    make: str = ""
    model: str = ""
    year: int | None = None
    vin: str = ""

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        out: dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            # Both spellings present: keep the first non-empty one.
            if name in out and out[name] not in (None, ""):
                continue
            out[name] = value

        for f in MONEY_FIELDS:
            if f in out:
                out[f] = to_decimal(out[f])
        for f in TEXT_FIELDS:
            if f in out:
                out[f] = "" if out[f] is None else str(out[f]).strip()
        if "shared" in out:
            out["shared"] = parse_flag(out["shared"])
        if "sale_type" in out:
            out["sale_type"] = _sale_type(out["sale_type"])
        if "year" in out:
            out["year"] = _year(out["year"])
        if isinstance(out.get("sold_date"), str):
            out["sold_date"] = parse_date(out["sold_date"][:10])
        return out


class CommissionOut(BaseModel):
    price_tier: float = 0.0
    accessory: float = 0.0
    warranty: float = 0.0
    maintenance: float = 0.0
    pass_through: float = 0.0
    gross: float = 0.0
    shared: bool = False
    total: float = 0.0

    @classmethod
    def from_breakdown(cls, b: CommissionBreakdown) -> "CommissionOut":
        return cls(
            price_tier=float(b.price_tier),
            accessory=float(b.accessory),
            warranty=float(b.warranty),
            maintenance=float(b.maintenance),
            pass_through=float(b.pass_through),
            gross=float(b.gross),
            shared=b.shared,
            total=float(b.total),
        )


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sold_date: date | None = None
    stock_number: str = ""
    salesperson_id: str = ""
    sale_type: str = ""
    sale_price: float = 0.0
    accessory_price: float = 0.0
    warranty_price: float = 0.0
    warranty_cost: float = 0.0
    maintenance_price: float = 0.0
    maintenance_cost: float = 0.0
    trade_in: float = 0.0
    bonus: float = 0.0
    shared: bool = False
    shared_with: str = ""
    first_name: str = ""
    last_name: str = ""
    make: str = ""
    model: str = ""
    year: int | None = None
    vin: str = ""
    commission: CommissionOut = CommissionOut()


class MonthStatsOut(BaseModel):
    total_sales: float = 0.0
    total_commission: float = 0.0
    number_of_sales: int = 0
    shared_sales: int = 0
    accessory_sales: float = 0.0


class MonthReportOut(BaseModel):
    month: str
    salesperson_id: str | None = None
    current: MonthStatsOut
    previous: MonthStatsOut
    change: dict[str, float]


class SalespersonStatsOut(BaseModel):
    salesperson_id: str
    number_of_sales: int = 0
    shared_sales: int = 0
    total_sales: float = 0.0
    total_commission: float = 0.0


class VehicleCountOut(BaseModel):
    vehicle: str
    count: int


class DailySalesOut(BaseModel):
    day: date
    number_of_sales: int = 0
    total_sales: float = 0.0
    total_commission: float = 0.0
