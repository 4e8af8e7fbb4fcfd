import csv
import io
import logging
import os
import traceback
from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_db, init_models
from .models import Sale
from .payplan import CommissionEngine, DEFAULT_PAYPLAN
from .reports import (
    calc_month_stats, build_month_report, calc_salesperson_stats,
    calc_vehicle_popularity, calc_daily_trend,
)
from .schemas import (
    MONEY_FIELDS, SaleIn, SaleOut, CommissionOut,
    MonthStatsOut, MonthReportOut, SalespersonStatsOut, VehicleCountOut, DailySalesOut,
)
from .utils import month_bounds, parse_month, previous_month, today


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("main")

_engine = CommissionEngine(DEFAULT_PAYPLAN)

def get_engine() -> CommissionEngine:
    return _engine


# ─── App setup ───
@asynccontextmanager
async def lifespan(application: FastAPI):
    await init_models()
    yield

app = FastAPI(title="Commission Tracker", lifespan=lifespan)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(Exception)
async def _exc(request: Request, exc: Exception):
    logger.error(f"Unhandled exception at {request.url}: {traceback.format_exc()}")
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


# ─── Helpers ───
def _month_or_400(month: str | None) -> date:
    if not month:
        t = today()
        return date(t.year, t.month, 1)
    d = parse_month(month)
    if d is None:
        logger.warning(f"Bad month parameter: {month!r}")
        raise HTTPException(status_code=400, detail="month must be YYYY-MM")
    return d

def _row_values(sale_in: SaleIn) -> dict:
    data = sale_in.model_dump()
    for f in MONEY_FIELDS:
        data[f] = float(data[f])
    st = data["sale_type"]
    data["sale_type"] = getattr(st, "value", st)
    if data["sold_date"] is None:
        data["sold_date"] = today()
    return data

def _sale_out(sale: Sale, engine: CommissionEngine) -> SaleOut:
    out = SaleOut.model_validate(sale)
    return out.model_copy(update={"commission": CommissionOut.from_breakdown(engine.calc_sale(sale))})

def _stats_out(stats) -> MonthStatsOut:
    return MonthStatsOut(
        total_sales=float(stats.total_sales),
        total_commission=float(stats.total_commission),
        number_of_sales=stats.number_of_sales,
        shared_sales=stats.shared_sales,
        accessory_sales=float(stats.accessory_sales),
    )

async def _sales_in_month(db: AsyncSession, d: date, salesperson_id: str | None = None) -> list[Sale]:
    s, e = month_bounds(d)
    stmt = select(Sale).where(Sale.sold_date >= s, Sale.sold_date < e)
    if salesperson_id:
        stmt = stmt.where(Sale.salesperson_id == salesperson_id)
    stmt = stmt.order_by(Sale.sold_date.desc(), Sale.id.desc())
    return list((await db.execute(stmt)).scalars().all())

async def _get_sale_or_404(db: AsyncSession, sale_id: int) -> Sale:
    sale = (await db.execute(select(Sale).where(Sale.id == sale_id))).scalar_one_or_none()
    if sale is None:
        raise HTTPException(status_code=404, detail="Sale not found")
    return sale


@app.get("/health")
async def health():
    return {"status": "ok"}


# ════════════════════════════════════════════════
# COMMISSION PREVIEW (sale form, every keystroke)
# ════════════════════════════════════════════════
@app.post("/api/commission/preview", response_model=CommissionOut)
async def commission_preview(sale_in: SaleIn, engine: CommissionEngine = Depends(get_engine)):
    return CommissionOut.from_breakdown(engine.calc_sale(sale_in))


# ════════════════════════════════════════════════
# SALES
# ════════════════════════════════════════════════
@app.get("/api/sales", response_model=list[SaleOut])
async def sales_list(
    month: str | None = None, salesperson_id: str | None = None,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    d = _month_or_400(month)
    return [_sale_out(s, engine) for s in await _sales_in_month(db, d, salesperson_id)]


@app.post("/api/sales", response_model=SaleOut, status_code=201)
async def sale_create(
    sale_in: SaleIn,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    sale = Sale(**_row_values(sale_in))
    db.add(sale)
    await db.commit()
    await db.refresh(sale)
    logger.info(f"Created sale {sale.id} for salesperson {sale.salesperson_id or '-'}")
    return _sale_out(sale, engine)


@app.get("/api/sales/{sale_id}", response_model=SaleOut)
async def sale_get(
    sale_id: int,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    return _sale_out(await _get_sale_or_404(db, sale_id), engine)


@app.put("/api/sales/{sale_id}", response_model=SaleOut)
async def sale_update(
    sale_id: int, sale_in: SaleIn,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    sale = await _get_sale_or_404(db, sale_id)
    values = _row_values(sale_in)
    if sale_in.sold_date is None:
        values["sold_date"] = sale.sold_date
    for k, v in values.items():
        setattr(sale, k, v)
    await db.commit()
    await db.refresh(sale)
    logger.info(f"Updated sale {sale.id}")
    return _sale_out(sale, engine)


@app.delete("/api/sales/{sale_id}", status_code=204)
async def sale_delete(sale_id: int, db: AsyncSession = Depends(get_db)):
    sale = await _get_sale_or_404(db, sale_id)
    await db.delete(sale)
    await db.commit()
    logger.info(f"Deleted sale {sale_id}")


# ════════════════════════════════════════════════
# REPORTS
# ════════════════════════════════════════════════
@app.get("/api/reports/month", response_model=MonthReportOut)
async def report_month(
    month: str | None = None, salesperson_id: str | None = None,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    d = _month_or_400(month)
    current = calc_month_stats(await _sales_in_month(db, d, salesperson_id), engine)
    previous = calc_month_stats(await _sales_in_month(db, previous_month(d), salesperson_id), engine)
    report = build_month_report(current, previous)
    return MonthReportOut(
        month=d.strftime("%Y-%m"),
        salesperson_id=salesperson_id,
        current=_stats_out(report.current),
        previous=_stats_out(report.previous),
        change=report.change,
    )


@app.get("/api/reports/salespeople", response_model=list[SalespersonStatsOut])
async def report_salespeople(
    month: str | None = None,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    d = _month_or_400(month)
    rows = calc_salesperson_stats(await _sales_in_month(db, d), engine)
    return [
        SalespersonStatsOut(
            salesperson_id=r.salesperson_id,
            number_of_sales=r.number_of_sales,
            shared_sales=r.shared_sales,
            total_sales=float(r.total_sales),
            total_commission=float(r.total_commission),
        )
        for r in rows
    ]


@app.get("/api/reports/vehicles", response_model=list[VehicleCountOut])
async def report_vehicles(month: str | None = None, limit: int = 10, db: AsyncSession = Depends(get_db)):
    d = _month_or_400(month)
    rows = calc_vehicle_popularity(await _sales_in_month(db, d), limit=max(1, limit))
    return [VehicleCountOut(vehicle=r.vehicle, count=r.count) for r in rows]


@app.get("/api/reports/daily", response_model=list[DailySalesOut])
async def report_daily(
    month: str | None = None, salesperson_id: str | None = None,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    d = _month_or_400(month)
    rows = calc_daily_trend(await _sales_in_month(db, d, salesperson_id), engine)
    return [
        DailySalesOut(
            day=r.day,
            number_of_sales=r.number_of_sales,
            total_sales=float(r.total_sales),
            total_commission=float(r.total_commission),
        )
        for r in rows
    ]


# ════════════════════════════════════════════════
# CSV EXPORT
# ════════════════════════════════════════════════
@app.get("/reports/export")
async def export_csv(
    month: str | None = None,
    db: AsyncSession = Depends(get_db), engine: CommissionEngine = Depends(get_engine),
):
    d = _month_or_400(month)
    sales = await _sales_in_month(db, d)
    out = io.StringIO(); w = csv.writer(out)
    w.writerow(["Sold Date","Stock #","Salesperson","Customer","Vehicle","New/Used","Sale Price","Accessories",
                "Warranty Price","Warranty Cost","Maintenance","Trade-In","Bonus","Shared","Shared With","Commission"])
    for s in sales:
        w.writerow([s.sold_date or "", s.stock_number, s.salesperson_id,
                    f"{s.first_name} {s.last_name}".strip(), f"{s.year or ''} {s.make} {s.model}".strip(),
                    s.sale_type, f"{s.sale_price:.2f}", f"{s.accessory_price:.2f}",
                    f"{s.warranty_price:.2f}", f"{s.warranty_cost:.2f}", f"{s.maintenance_price:.2f}",
                    f"{s.trade_in:.2f}", f"{s.bonus:.2f}", "Y" if s.shared else "N", s.shared_with,
                    f"{engine.commission(s):.2f}"])
    out.seek(0)
    label = d.strftime("%Y-%m")
    logger.info(f"Exported {len(sales)} sale(s) for {label}")
    return StreamingResponse(iter([out.getvalue()]), media_type="text/csv",
                             headers={"Content-Disposition": f"attachment; filename=commission-export-{label}.csv"})
