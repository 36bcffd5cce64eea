# production/serializers.py

from rest_framework import serializers

from .constants import MAX_UNITS
from .models import OrderLine, StockEntry
from .normalization import normalize_code, to_units, whole_units


# The source system still posts some payloads with its original (Spanish) keys.
ZONE_KEY_ALIASES = {
    "codigo_agente": "agentCode",
    "nombre_agente": "agentName",
    "nombre_comercial": "agentName",
    "productos": "products",
}
LINE_KEY_ALIASES = {
    "codigo": "code",
    "nombre_producto": "name",
    "cantidad": "quantity",
    "stock_fisico": "stockLevel",
}
SNAPSHOT_KEY_ALIASES = {
    "zonas": "zones",
}


def _with_aliases(data, aliases):
    if not isinstance(data, dict):
        return data
    out = dict(data)
    for legacy, key in aliases.items():
        if legacy in out and key not in out:
            out[key] = out.pop(legacy)
    return out


class LooseNumberField(serializers.Field):
    """Accepts whatever the source sends (3, "2,5", null, "abc"); parsed later, bad values count as 0."""

    def to_internal_value(self, data):
        return data

    def to_representation(self, value):
        return value


# ============ Snapshot (webhook input) ============
class SnapshotLineSerializer(serializers.Serializer):
    code       = serializers.CharField(allow_blank=True, allow_null=True, required=False, default="")
    name       = serializers.CharField(allow_blank=True, allow_null=True, required=False, default="")
    quantity   = LooseNumberField(required=False, allow_null=True, default=0)
    stockLevel = LooseNumberField(source="stock_level", required=False, allow_null=True, default=None)

    def to_internal_value(self, data):
        return super().to_internal_value(_with_aliases(data, LINE_KEY_ALIASES))

    def validate(self, attrs):
        # loose numbers still have to fit the integer columns once converted to units
        if to_units(normalize_code(attrs.get("code")), attrs.get("quantity")) > MAX_UNITS:
            raise serializers.ValidationError({"quantity": f"more than {MAX_UNITS} units"})
        level = attrs.get("stock_level")
        if level is not None and whole_units(level) > MAX_UNITS:
            raise serializers.ValidationError({"stockLevel": f"more than {MAX_UNITS} units"})
        return attrs


class SnapshotZoneSerializer(serializers.Serializer):
    agentCode = serializers.CharField(source="agent_code", allow_blank=True, allow_null=True, required=False, default="")
    agentName = serializers.CharField(source="agent_name", allow_blank=True, allow_null=True, required=False, default="")
    # absent products == the agent has nothing left today
    products  = SnapshotLineSerializer(many=True, required=False, default=list)

    def to_internal_value(self, data):
        return super().to_internal_value(_with_aliases(data, ZONE_KEY_ALIASES))


class SnapshotSerializer(serializers.Serializer):
    zones = SnapshotZoneSerializer(many=True, allow_empty=True)

    def to_internal_value(self, data):
        return super().to_internal_value(_with_aliases(data, SNAPSHOT_KEY_ALIASES))


class SyncResultSerializer(serializers.Serializer):
    ok       = serializers.BooleanField(default=True)
    day      = serializers.DateField()
    agents   = serializers.ListField(child=serializers.CharField())
    inserted = serializers.IntegerField()
    updated  = serializers.IntegerField()
    deleted  = serializers.IntegerField()


# ============ Stock ============
class StockEntrySerializer(serializers.ModelSerializer):
    productCode  = serializers.CharField(source="product_code", read_only=True)
    stockUnits   = serializers.IntegerField(source="stock_qty", read_only=True)
    lastModified = serializers.IntegerField(source="last_modified", read_only=True)

    class Meta:
        model = StockEntry
        fields = ["productCode", "stockUnits", "lastModified"]


class StockScanSerializer(serializers.Serializer):
    productCode = serializers.CharField(source="product_code")
    deltaUnits  = serializers.IntegerField(source="delta_units", min_value=-MAX_UNITS, max_value=MAX_UNITS)

    def validate_deltaUnits(self, value):
        if value == 0:
            raise serializers.ValidationError("deltaUnits must be non-zero")
        return value


# ============ Read model / dashboard ============
class LedgerRowSerializer(serializers.Serializer):
    agentCode         = serializers.CharField(source="agent_code")
    agentName         = serializers.CharField(source="agent_name")
    productCode       = serializers.CharField(source="product_code")
    productName       = serializers.CharField(source="product_name")
    totalQtyToday     = serializers.IntegerField(source="total_qty_today")
    totalQtyYesterday = serializers.IntegerField(source="total_qty_yesterday")
    globalStock       = serializers.IntegerField(source="global_stock")


class ProductViewSerializer(serializers.Serializer):
    code         = serializers.CharField()
    name         = serializers.CharField()
    qty          = serializers.IntegerField()
    yesterdayQty = serializers.IntegerField(source="yesterday_qty")
    stock        = serializers.IntegerField()
    toProduce    = serializers.IntegerField(source="to_produce")
    trendPct     = serializers.FloatField(source="trend_pct")


class ClientGroupSerializer(serializers.Serializer):
    name           = serializers.CharField()
    products       = ProductViewSerializer(many=True)
    totalToday     = serializers.IntegerField(source="total_today")
    totalYesterday = serializers.IntegerField(source="total_yesterday")
    trendPct       = serializers.FloatField(source="trend_pct")


class DashboardSummarySerializer(serializers.Serializer):
    totalProduction = serializers.IntegerField(source="total_production")
    totalStock      = serializers.IntegerField(source="total_stock")
    totalToProduce  = serializers.IntegerField(source="total_to_produce")
    activeZones     = serializers.IntegerField(source="active_zones")
    averagePerZone  = serializers.IntegerField(source="average_per_zone")
    efficiency      = serializers.FloatField()
    topProducts     = serializers.ListField(source="top_products", child=serializers.DictField())


class LedgerOrderLineSerializer(serializers.ModelSerializer):
    """Raw ledger rows, for the admin-ish ledger listing."""

    class Meta:
        model = OrderLine
        fields = [
            "record_key", "agent_code", "agent_name", "product_code",
            "product_name", "quantity", "recorded_day", "received_at",
        ]
        read_only_fields = fields
