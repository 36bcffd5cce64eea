# production/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    OrderLineViewSet, StockViewSet, snapshot_webhook, ledger_data, dashboard,
    dashboard_stats, history, reset, events,
)

router = DefaultRouter()
router.register(r"orders", OrderLineViewSet, basename="order")   # /api/orders/
router.register(r"stock", StockViewSet, basename="stock")        # /api/stock/, /api/stock/scan/

urlpatterns = [
    path("", include(router.urls)),
    path("webhook/", snapshot_webhook, name="snapshot-webhook"),
    path("data/", ledger_data, name="ledger-data"),
    path("dashboard/", dashboard, name="dashboard"),
    path("stats/", dashboard_stats, name="dashboard-stats"),
    path("history/", history, name="history"),
    path("reset/", reset, name="reset"),
    path("events/", events, name="events"),
]
