from datetime import date
from unittest import mock

import pytest
from asgiref.sync import async_to_sync
from django.test import AsyncClient
from django.utils import timezone
from rest_framework.test import APIClient

from production.constants import MAX_UNITS
from production.events import EventBus
from production.models import OrderLine, StockEntry
from production.services import PersistenceError

pytestmark = pytest.mark.django_db

TODAY = date(2026, 10, 19)


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture(autouse=True)
def fixed_today():
    with mock.patch.object(timezone, "localdate", return_value=TODAY):
        yield


def post_snapshot(client, payload):
    return client.post("/api/webhook/", payload, format="json")


def test_webhook_stores_units(client):
    res = post_snapshot(client, {
        "zones": [{"agentCode": "10", "agentName": "gc", "products": [{"code": "PACK9", "name": "burrata", "quantity": 2}]}],
    })

    assert res.status_code == 200
    assert res.data["ok"] is True
    assert res.data["day"] == "2026-10-19"
    assert (res.data["inserted"], res.data["updated"], res.data["deleted"]) == (1, 0, 0)
    assert OrderLine.objects.get(pk="10-PACK9-2026-10-19").quantity == 18


def test_webhook_accepts_source_keys(client):
    res = post_snapshot(client, {
        "zonas": [{
            "codigo_agente": 27,
            "nombre_agente": "pinguino",
            "productos": [{"codigo": "bur4", "nombre_producto": "burger", "cantidad": "3,9", "stock_fisico": "7"}],
        }],
    })

    assert res.status_code == 200
    row = OrderLine.objects.get()
    assert (row.agent_code, row.product_code, row.quantity) == ("27", "BUR4", 6)
    assert StockEntry.objects.get(pk="BUR4").stock_qty == 7


@pytest.mark.parametrize("payload", [
    {},
    {"zones": "nope"},
    {"zones": None},
    {"zones": [{"agentCode": "10", "products": "nope"}]},
])
def test_malformed_snapshot_is_rejected_before_any_write(client, payload):
    with mock.patch("production.views.reconcile_snapshot") as reconcile:
        res = post_snapshot(client, payload)

    assert res.status_code == 400
    reconcile.assert_not_called()


def test_webhook_storage_failure_is_retryable(client):
    with mock.patch("production.views.reconcile_snapshot", side_effect=PersistenceError("db down")):
        res = post_snapshot(client, {"zones": []})

    assert res.status_code == 503
    assert res.data["retryable"] is True


@pytest.mark.parametrize("product", [
    {"code": "BUR13", "quantity": "1e18"},
    {"code": "X", "quantity": MAX_UNITS + 1},
    {"code": "BUR4", "quantity": MAX_UNITS // 2 + 1},
    {"code": "X", "quantity": 1, "stockLevel": 1e12},
])
def test_quantities_beyond_the_column_range_are_rejected(client, product):
    res = post_snapshot(client, {"zones": [{"agentCode": "10", "products": [product]}]})

    assert res.status_code == 400
    assert OrderLine.objects.count() == 0
    assert StockEntry.objects.count() == 0


def test_largest_storable_quantity_is_accepted(client):
    # 53687091 boxes of 40
    res = post_snapshot(client, {"zones": [{"agentCode": "10", "products": [{"code": "BUR13", "quantity": 53687091}]}]})

    assert res.status_code == 200
    assert OrderLine.objects.get().quantity == 2147483640


def test_dashboard_allocates_in_client_order(client):
    post_snapshot(client, {"zones": [
        {"agentCode": "24", "products": [{"code": "X", "quantity": 8}]},
        {"agentCode": "10", "products": [{"code": "X", "quantity": 6}]},
    ]})
    client.post("/api/stock/scan/", {"productCode": "X", "deltaUnits": 10}, format="json")

    res = client.get("/api/dashboard/")

    assert res.status_code == 200
    gc, filippo = res.json()
    assert gc["name"] == "GRAN CANARIA"
    assert gc["products"][0] == {
        "code": "X", "name": "X", "qty": 6, "yesterdayQty": 0,
        "stock": 6, "toProduce": 0, "trendPct": 100.0,
    }
    assert filippo["name"] == "FILIPPO"
    assert (filippo["products"][0]["stock"], filippo["products"][0]["toProduce"]) == (4, 4)
    assert filippo["totalToday"] == 8


def test_data_endpoint_rows(client):
    post_snapshot(client, {"zones": [{"agentCode": "15", "agentName": "norte", "products": [{"code": "RIC3", "name": "ricotta", "quantity": 1}]}]})

    res = client.get("/api/data/")

    assert res.json() == [{
        "agentCode": "15", "agentName": "NORTE", "productCode": "RIC3", "productName": "RICOTTA",
        "totalQtyToday": 6, "totalQtyYesterday": 0, "globalStock": 0,
    }]


def test_stats_endpoint(client):
    post_snapshot(client, {"zones": [{"agentCode": "10", "products": [{"code": "X", "name": "burrata", "quantity": 4}]}]})
    client.post("/api/stock/scan/", {"productCode": "X", "deltaUnits": 1}, format="json")

    data = client.get("/api/stats/").json()

    assert data["totalProduction"] == 4
    assert data["totalStock"] == 1
    assert data["totalToProduce"] == 3
    assert data["activeZones"] == 1
    assert data["efficiency"] == 25.0
    assert data["topProducts"] == [{"name": "BURRATA", "qty": 4}]


def test_history_endpoint(client):
    post_snapshot(client, {"zones": [{"agentCode": "10", "products": [{"code": "X", "quantity": 4}]}]})

    res = client.get("/api/history/", {"period": "month"})
    assert res.status_code == 200
    assert len(res.json()) == 30
    assert res.json()[-1] == {"date": "2026-10-19", "production": 4}

    assert client.get("/api/history/", {"period": "decade"}).status_code == 400


def test_history_storage_failure_is_retryable(client):
    with mock.patch("production.views.daily_history", side_effect=PersistenceError("db down")):
        res = client.get("/api/history/")

    assert res.status_code == 503
    assert res.data["retryable"] is True


def test_stock_scan_and_listing(client):
    res = client.post("/api/stock/scan/", {"productCode": "'bur4", "deltaUnits": 12}, format="json")
    assert res.status_code == 200
    assert res.data["productCode"] == "BUR4"
    assert res.data["stockUnits"] == 12

    client.post("/api/stock/scan/", {"productCode": "BUR4", "deltaUnits": 3}, format="json")
    listing = client.get("/api/stock/").json()
    assert listing["results"][0]["stockUnits"] == 15


def test_stock_scan_validation(client):
    assert client.post("/api/stock/scan/", {"productCode": "BUR4", "deltaUnits": 0}, format="json").status_code == 400
    assert client.post("/api/stock/scan/", {"deltaUnits": 2}, format="json").status_code == 400
    assert client.post("/api/stock/scan/", {"productCode": "BUR4", "deltaUnits": -2}, format="json").status_code == 409
    assert client.post("/api/stock/scan/", {"productCode": "BUR4", "deltaUnits": 10**12}, format="json").status_code == 400
    assert client.post("/api/stock/scan/", {"productCode": "BUR4", "deltaUnits": -10**12}, format="json").status_code == 400
    assert StockEntry.objects.count() == 0


def test_orders_listing_filters(client):
    post_snapshot(client, {"zones": [
        {"agentCode": "10", "products": [{"code": "A", "quantity": 1}]},
        {"agentCode": "24", "products": [{"code": "B", "quantity": 1}]},
    ]})

    data = client.get("/api/orders/", {"agent": "24", "day": "2026-10-19"}).json()
    assert [r["record_key"] for r in data["results"]] == ["24-B-2026-10-19"]


def test_reset_then_read_is_empty(client):
    post_snapshot(client, {"zones": [{"agentCode": "10", "products": [{"code": "X", "quantity": 4}]}]})
    client.post("/api/stock/scan/", {"productCode": "X", "deltaUnits": 1}, format="json")

    res = client.post("/api/reset/")

    assert res.status_code == 200
    assert res.data == {"ok": True, "orders_deleted": 1, "stock_deleted": 1}
    assert client.get("/api/data/").json() == []
    assert client.get("/api/dashboard/").json() == []


def test_events_endpoint_streams(client):
    live = EventBus(max_pending=10)
    with mock.patch("production.views.bus", live):
        res = client.get("/api/events/")

        assert res.status_code == 200
        assert res["Content-Type"] == "text/event-stream"
        assert res["Cache-Control"] == "no-cache"
        frames = iter(res.streaming_content)
        assert next(frames) == b": connected\n\n"

        live.publish("order", "BUR4")
        assert next(frames) == b'data: {"type": "order", "code": "BUR4"}\n\n'
        res.close()

    assert live.subscriber_count == 0


def test_events_endpoint_delivers_published_event_over_asgi():
    live = EventBus(max_pending=10)

    async def read_frames():
        res = await AsyncClient().get("/api/events/")
        frames = res.streaming_content
        opened = await anext(frames)
        live.publish("stock", "BUR4")
        event = await anext(frames)
        await frames.aclose()
        return res, opened, event

    with mock.patch("production.views.bus", live):
        res, opened, event = async_to_sync(read_frames)()

    assert res.status_code == 200
    assert res["Content-Type"] == "text/event-stream"
    assert opened == b": connected\n\n"
    assert event == b'data: {"type": "stock", "code": "BUR4"}\n\n'
