from django.contrib import admin
from .models import OrderLine, StockEntry
from .normalization import client_name


@admin.register(OrderLine)
class OrderLineAdmin(admin.ModelAdmin):
    list_display = ("record_key", "agent_code", "client", "product_code", "product_name", "quantity", "recorded_day")
    list_filter = ("recorded_day",)
    search_fields = ("agent_code", "product_code", "product_name")

    def client(self, obj):
        return client_name(obj.agent_code)


@admin.register(StockEntry)
class StockEntryAdmin(admin.ModelAdmin):
    list_display = ("product_code", "stock_qty", "last_modified")
    search_fields = ("product_code",)
