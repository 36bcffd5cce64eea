# production/views.py
# ============================================================
# Imports
# ============================================================
from django.core.handlers.asgi import ASGIRequest
from django.http import StreamingHttpResponse
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_http_methods

from rest_framework import viewsets, filters, permissions, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .allocation import summarize
from .constants import HISTORY_PERIODS
from .events import bus
from .models import OrderLine, StockEntry
from .serializers import (
    SnapshotSerializer,
    SyncResultSerializer,
    StockEntrySerializer,
    StockScanSerializer,
    LedgerRowSerializer,
    LedgerOrderLineSerializer,
    ClientGroupSerializer,
    DashboardSummarySerializer,
)
from .services import (
    reconcile_snapshot,
    add_stock,
    reset_all,
    ledger_rows,
    build_dashboard,
    daily_history,
    PersistenceError,
    StockError,
)


def _retry_later(exc):
    return Response({"detail": str(exc), "retryable": True}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


# ============================================================
# Snapshot webhook
# ============================================================
@api_view(["POST"])
@permission_classes([AllowAny])
def snapshot_webhook(request):
    """
    POST /api/webhook/
    {
      "zones": [
        {"agentCode": "10", "agentName": "GC NORTE",
         "products": [{"code": "PACK9", "name": "Burrata 9u", "quantity": "2,5", "stockLevel": 40}]}
      ]
    }
    A full snapshot: every agent listed ends up with exactly these lines for today.
    """
    s = SnapshotSerializer(data=request.data)
    s.is_valid(raise_exception=True)

    try:
        result = reconcile_snapshot(s.validated_data["zones"])
    except PersistenceError as e:
        return _retry_later(e)

    out = SyncResultSerializer({
        "ok": True,
        "day": result.day,
        "agents": result.agents,
        "inserted": result.inserted,
        "updated": result.updated,
        "deleted": result.deleted,
    })
    return Response(out.data)


# ============================================================
# Read model / dashboard
# ============================================================
@api_view(["GET"])
def ledger_data(request):
    """GET /api/data/ -> per agent/product totals for the latest day and the one before it."""
    try:
        rows = ledger_rows()
    except PersistenceError as e:
        return _retry_later(e)
    return Response(LedgerRowSerializer(rows, many=True).data)


@api_view(["GET"])
def dashboard(request):
    """GET /api/dashboard/ -> clients in serving order, stock allocated, trends vs previous day."""
    try:
        clients = build_dashboard()
    except PersistenceError as e:
        return _retry_later(e)
    return Response(ClientGroupSerializer(clients, many=True).data)


@api_view(["GET"])
def dashboard_stats(request):
    try:
        clients = build_dashboard()
    except PersistenceError as e:
        return _retry_later(e)
    return Response(DashboardSummarySerializer(summarize(clients)).data)


@api_view(["GET"])
def history(request):
    """GET /api/history/?period=week|month|quarter|year"""
    period = (request.GET.get("period") or "week").lower()
    if period not in HISTORY_PERIODS:
        return Response(
            {"detail": f"period must be one of {', '.join(HISTORY_PERIODS)}"},
            status=status.HTTP_400_BAD_REQUEST,
        )
    try:
        return Response(daily_history(period))
    except PersistenceError as e:
        return _retry_later(e)


# ============================================================
# Ledger (read-only browsing)
# ============================================================
class OrderLineViewSet(viewsets.ReadOnlyModelViewSet):
    """
    /api/orders/
      - day=2026-10-19
      - agent=10
      - q=BUR
      - ordering=quantity|-quantity|product_code|recorded_day
    """
    permission_classes = [permissions.AllowAny]
    queryset = OrderLine.objects.order_by("-recorded_day", "agent_code", "product_code")
    serializer_class = LedgerOrderLineSerializer

    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["product_code", "product_name", "agent_name"]
    ordering_fields = ["quantity", "product_code", "recorded_day", "agent_code"]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        day = parse_date(params.get("day") or "")
        if day:
            qs = qs.filter(recorded_day=day)

        agent = params.get("agent")
        if agent:
            qs = qs.filter(agent_code=agent.strip().upper())
        return qs


# ============================================================
# Stock pool
# ============================================================
class StockViewSet(viewsets.ReadOnlyModelViewSet):
    """
    /api/stock/           list of product pools (q / ordering=stock_qty)
    /api/stock/scan/      POST {"productCode": "BUR4", "deltaUnits": 12}
    """
    permission_classes = [permissions.AllowAny]
    queryset = StockEntry.objects.order_by("product_code")
    serializer_class = StockEntrySerializer

    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["product_code"]
    ordering_fields = ["product_code", "stock_qty", "last_modified"]

    @action(detail=False, methods=["POST"], url_path="scan")
    def scan(self, request):
        s = StockScanSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            entry = add_stock(data["product_code"], data["delta_units"])
        except StockError as e:
            return Response({"detail": str(e)}, status=status.HTTP_409_CONFLICT)
        except PersistenceError as e:
            return _retry_later(e)

        return Response(StockEntrySerializer(entry).data, status=status.HTTP_200_OK)


# ============================================================
# Reset
# ============================================================
@api_view(["POST"])
@permission_classes([AllowAny])
def reset(request):
    """POST /api/reset/ -> wipes ledger and stock pool."""
    try:
        orders, stock = reset_all()
    except PersistenceError as e:
        return _retry_later(e)
    return Response({"ok": True, "orders_deleted": orders, "stock_deleted": stock})


# ============================================================
# Live events (SSE)
# ============================================================
@require_http_methods(["GET"])
def events(request):
    """
    GET /api/events/
    text/event-stream; `data: {"type": "order", "code": "BUR4"}` frames plus `:` keepalives.
    Plain Django view: DRF content negotiation does not know text/event-stream.
    ASGI servers get the async stream; a sync iterator would be drained before sending.
    """
    frames = bus.astream() if isinstance(request, ASGIRequest) else bus.stream()
    response = StreamingHttpResponse(frames, content_type="text/event-stream")
    response["Cache-Control"] = "no-cache"
    response["X-Accel-Buffering"] = "no"  # nginx must not buffer the stream
    return response
