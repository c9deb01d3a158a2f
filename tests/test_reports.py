import csv
import io
from datetime import timedelta

from app.services.reports import CSV_HEADER

from conftest import DAY, FIXED_NOW, headers


def _sell(client, op, qty, price, method="cash"):
    r = client.post(
        "/sales",
        json={"lines": [{"name": "Entrada", "unit_price": price, "quantity": qty, "payment_method": method}]},
        headers=headers(op),
    )
    assert r.status_code == 200, r.text
    return r.json()["sale"]


def _seed(client):
    client.post("/users", json={"id": "op-1", "email": "ana@tienda.pe", "display_name": "Ana"})
    for op in ("op-1", "op-2"):
        client.post("/register/open", headers=headers(op))
    _sell(client, "op-1", 10, 5)
    _sell(client, "op-1", 2, 4, "transfer")
    _sell(client, "op-2", 1, 7)


def test_daily_summary(client):
    _seed(client)
    js = client.get("/reports/daily").json()
    assert js["business_day"] == DAY
    assert js["sales_count"] == 3
    assert js["total"] == 65.0 and js["cash"] == 57.0 and js["transfer"] == 8.0
    assert js["free_items"] == 1
    assert {r["operator_id"] for r in js["registers"]} == {"op-1", "op-2"}


def test_range_report_and_seller_filter(client):
    _seed(client)
    js = client.get("/reports/range", params={"start": DAY, "end": DAY}).json()
    assert js["sales_count"] == 3
    sellers = {s["operator_id"]: s for s in js["by_seller"]}
    assert sellers["op-1"]["name"] == "Ana" and sellers["op-1"]["total"] == 58.0
    assert js["daily"] == [{"business_day": DAY, "total": 65.0}]

    js = client.get("/reports/range", params={"start": DAY, "end": DAY, "seller": "op-2"}).json()
    assert js["total"] == 7.0


def test_range_excludes_other_days(client):
    _seed(client)
    prev = (FIXED_NOW - timedelta(days=1)).date().isoformat()
    js = client.get("/reports/range", params={"start": prev, "end": prev}).json()
    assert js["sales_count"] == 0


def test_range_validation(client):
    r = client.get("/reports/range", params={"start": "2025-03-11", "end": "2025-03-10"})
    assert r.status_code == 422
    r = client.get("/reports/range", params={"start": "ayer", "end": "2025-03-10"})
    assert r.status_code == 422


def test_export_csv(client):
    _seed(client)
    r = client.get("/reports/export.csv", params={"start": DAY, "end": DAY})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0] == CSV_HEADER
    assert len(rows) == 4
    assert rows[1][5] == "50.00" and rows[1][9] == "1"
