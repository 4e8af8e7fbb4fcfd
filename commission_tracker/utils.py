from datetime import date, datetime

def parse_date(s: str | None):
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None

def parse_month(s: str | None) -> date | None:
    """'2024-03' -> date(2024, 3, 1); None when missing or malformed."""
    if not s:
        return None
    try:
        y, m = s.strip().split("-")
        return date(int(y), int(m), 1)
    except ValueError:
        return None

def today():
    return date.today()

def month_bounds(d: date):
    start = date(d.year, d.month, 1)
    end = date(d.year + 1, 1, 1) if d.month == 12 else date(d.year, d.month + 1, 1)
    return start, end

def previous_month(d: date) -> date:
    return date(d.year - 1, 12, 1) if d.month == 1 else date(d.year, d.month - 1, 1)

def parse_flag(v) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    return str(v).strip().lower() in ("y", "yes", "1", "true", "x", "on")
