"""
HTTP surface tests: preview, sales CRUD, reports, CSV export.
"""

from datetime import date
from decimal import Decimal

from commission_tracker import main
from commission_tracker.main import app, get_engine
from commission_tracker.payplan import CommissionEngine, PayPlan


def _payload(**kwargs):
    data = {
        "salespersonId": "sp-1",
        "soldDate": "2024-03-05",
        "saleType": "New",
        "salePrice": 15000,
        "accessoryPrice": 998,
        "firstName": "Dana",
        "lastName": "Reyes",
        "make": "Toyota",
        "model": "Corolla",
        "year": 2024,
    }
    data.update(kwargs)
    return data


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


# ── Preview ───────────────────────────────────────────────


class TestPreview:
    def test_breakdown(self, client):
        r = client.post("/api/commission/preview", json={
            "salePrice": 25000, "saleType": "New", "accessoryPrice": 1898,
            "warrantyPrice": 2500, "warrantyCost": 500, "maintenancePrice": 900,
            "tradeIn": 0, "bonus": 0, "shared": False,
        })
        assert r.status_code == 200
        body = r.json()
        assert body["price_tier"] == 400
        assert body["accessory"] == 100
        assert body["warranty"] == 200
        assert body["maintenance"] == 100
        assert body["total"] == 800

    def test_half_filled_form(self, client):
        r = client.post("/api/commission/preview", json={
            "salePrice": "", "saleType": "", "tradeIn": "12a", "shared": "true",
        })
        assert r.status_code == 200
        assert r.json()["total"] == 0

    def test_huge_numbers(self, client):
        r = client.post("/api/commission/preview", json={"salePrice": 15000, "saleType": "New", "tradeIn": 1e30})
        assert r.status_code == 200
        assert r.json()["total"] == 300

    def test_shared(self, client):
        r = client.post("/api/commission/preview", json=_payload(shared=True))
        assert r.json()["total"] == 150
        assert r.json()["shared"] is True

    def test_non_object_body_rejected(self, client):
        r = client.post("/api/commission/preview", json=[1, 2, 3])
        assert r.status_code == 422

    def test_engine_override(self, client):
        app.dependency_overrides[get_engine] = lambda: CommissionEngine(PayPlan(shared_divisor=Decimal("1")))
        try:
            r = client.post("/api/commission/preview", json=_payload(shared=True))
        finally:
            app.dependency_overrides.clear()
        assert r.json()["total"] == 300


# ── Sales CRUD ────────────────────────────────────────────


class TestSales:
    def test_create_and_get(self, client):
        r = client.post("/api/sales", json=_payload(accessoryPrice=1898, salePrice=25000))
        assert r.status_code == 201
        sale = r.json()
        assert sale["id"] > 0
        assert sale["sale_type"] == "New"
        assert sale["sold_date"] == "2024-03-05"
        assert sale["commission"]["total"] == 500

        r = client.get(f"/api/sales/{sale['id']}")
        assert r.status_code == 200
        assert r.json()["first_name"] == "Dana"
        assert r.json()["commission"]["total"] == 500

    def test_missing_date_defaults_to_today(self, client):
        r = client.post("/api/sales", json=_payload(soldDate=None))
        assert r.json()["sold_date"] is not None

    def test_list_filters_by_month_and_salesperson(self, client):
        client.post("/api/sales", json=_payload())
        client.post("/api/sales", json=_payload(salespersonId="sp-2"))
        client.post("/api/sales", json=_payload(soldDate="2024-02-28"))

        march = client.get("/api/sales", params={"month": "2024-03"}).json()
        assert len(march) == 2
        mine = client.get("/api/sales", params={"month": "2024-03", "salesperson_id": "sp-2"}).json()
        assert [s["salesperson_id"] for s in mine] == ["sp-2"]

    def test_bad_month(self, client):
        assert client.get("/api/sales", params={"month": "03/2024"}).status_code == 400

    def test_update_recomputes(self, client):
        sale_id = client.post("/api/sales", json=_payload()).json()["id"]
        r = client.put(f"/api/sales/{sale_id}", json=_payload(soldDate=None, shared=True,
                                                              sharedWithEmail="pat@example.com"))
        assert r.status_code == 200
        body = r.json()
        assert body["commission"]["total"] == 150
        assert body["shared_with"] == "pat@example.com"
        # date kept when the edit leaves it blank
        assert body["sold_date"] == "2024-03-05"

    def test_delete(self, client):
        sale_id = client.post("/api/sales", json=_payload()).json()["id"]
        assert client.delete(f"/api/sales/{sale_id}").status_code == 204
        assert client.get(f"/api/sales/{sale_id}").status_code == 404

    def test_missing_sale(self, client):
        assert client.get("/api/sales/999").status_code == 404
        assert client.put("/api/sales/999", json=_payload()).status_code == 404
        assert client.delete("/api/sales/999").status_code == 404


# ── Reports ───────────────────────────────────────────────


class TestReports:
    def _seed(self, client):
        client.post("/api/sales", json=_payload())                                      # 300
        client.post("/api/sales", json=_payload(salePrice=25000, accessoryPrice=1898))  # 500
        client.post("/api/sales", json=_payload(salespersonId="sp-2", shared=True))     # 150
        client.post("/api/sales", json=_payload(soldDate="2024-02-10"))                 # 300, Feb

    def test_month_over_month(self, client):
        self._seed(client)
        r = client.get("/api/reports/month", params={"month": "2024-03"})
        assert r.status_code == 200
        body = r.json()
        assert body["month"] == "2024-03"
        assert body["current"]["number_of_sales"] == 3
        assert body["current"]["shared_sales"] == 1
        assert body["current"]["total_commission"] == 950
        assert body["previous"]["total_commission"] == 300
        assert body["change"]["number_of_sales"] == 200.0
        assert body["change"]["shared_sales"] == 100.0

    def test_month_for_one_salesperson(self, client):
        self._seed(client)
        body = client.get("/api/reports/month", params={"month": "2024-03", "salesperson_id": "sp-2"}).json()
        assert body["salesperson_id"] == "sp-2"
        assert body["current"]["total_commission"] == 150
        assert body["previous"]["number_of_sales"] == 0

    def test_salespeople(self, client):
        self._seed(client)
        rows = client.get("/api/reports/salespeople", params={"month": "2024-03"}).json()
        assert [r["salesperson_id"] for r in rows] == ["sp-1", "sp-2"]
        assert rows[0]["total_commission"] == 800
        assert rows[1]["shared_sales"] == 1

    def test_bad_month(self, client):
        assert client.get("/api/reports/month", params={"month": "2024-00"}).status_code == 400

    def test_export_csv(self, client):
        self._seed(client)
        r = client.get("/reports/export", params={"month": "2024-03"})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert "commission-export-2024-03.csv" in r.headers["content-disposition"]
        lines = r.text.strip().splitlines()
        assert lines[0].startswith("Sold Date,Stock #")
        assert len(lines) == 4
        assert any(line.endswith(",Y,,150.00") for line in lines[1:])

    def test_vehicles(self, client):
        self._seed(client)
        client.post("/api/sales", json=_payload(make="Honda", model="Civic"))
        rows = client.get("/api/reports/vehicles", params={"month": "2024-03"}).json()
        assert rows == [{"vehicle": "Toyota Corolla", "count": 3}, {"vehicle": "Honda Civic", "count": 1}]
        top = client.get("/api/reports/vehicles", params={"month": "2024-03", "limit": 1}).json()
        assert len(top) == 1

    def test_daily(self, client):
        self._seed(client)
        client.post("/api/sales", json=_payload(soldDate="2024-03-01"))
        rows = client.get("/api/reports/daily", params={"month": "2024-03"}).json()
        assert [r["day"] for r in rows] == ["2024-03-01", "2024-03-05"]
        assert rows[0]["total_commission"] == 300
        assert rows[1]["number_of_sales"] == 3
        assert rows[1]["total_commission"] == 950

    def test_default_month_reads_clock_once(self, client, monkeypatch):
        calls = []

        def fake_today():
            calls.append(1)
            return date(2024, 3, 31) if len(calls) == 1 else date(2024, 4, 1)

        monkeypatch.setattr(main, "today", fake_today)
        assert main._month_or_400(None) == date(2024, 3, 1)
        assert len(calls) == 1
