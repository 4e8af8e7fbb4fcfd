from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, Float, Date, Boolean, DateTime
from datetime import date, datetime, timezone

def _utcnow() -> datetime:
    """Naive UTC now — for TIMESTAMP columns (not TIMESTAMPTZ)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Base(DeclarativeBase):
    pass


# ════════════════════════════════════════════════
# SALE: one vehicle sale recorded by a salesperson
# Commission is NOT stored: it is recomputed from these
# fields by the CommissionEngine every time a sale is read.
# ════════════════════════════════════════════════
class Sale(Base):
    __tablename__ = "sales"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    salesperson_id: Mapped[str] = mapped_column(String(64), default="", index=True)
    sold_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    stock_number: Mapped[str] = mapped_column(String(40), default="")

    # "New" | "Used"
    sale_type: Mapped[str] = mapped_column(String(16), default="")
    sale_price: Mapped[float] = mapped_column(Float, default=0.0)
    accessory_price: Mapped[float] = mapped_column(Float, default=0.0)
    warranty_price: Mapped[float] = mapped_column(Float, default=0.0)
    warranty_cost: Mapped[float] = mapped_column(Float, default=0.0)
    maintenance_price: Mapped[float] = mapped_column(Float, default=0.0)
    maintenance_cost: Mapped[float] = mapped_column(Float, default=0.0)
    trade_in: Mapped[float] = mapped_column(Float, default=0.0)
    # Manually entered flat addend, not the computed commission
    bonus: Mapped[float] = mapped_column(Float, default=0.0)

    shared: Mapped[bool] = mapped_column(Boolean, default=False)
    # Email or salesperson id of the other half of a shared sale
    shared_with: Mapped[str] = mapped_column(String(254), default="")

    # Customer / vehicle copied onto the sale row
    first_name: Mapped[str] = mapped_column(String(80), default="")
    last_name: Mapped[str] = mapped_column(String(80), default="")
    make: Mapped[str] = mapped_column(String(80), default="")
    model: Mapped[str] = mapped_column(String(120), default="")
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vin: Mapped[str] = mapped_column(String(32), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
