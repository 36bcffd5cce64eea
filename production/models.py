import time
from django.db import models


class OrderLine(models.Model):
    """
    One ledger row per (agent, product, day). `quantity` is in units (boxes x pack size)
    and always holds the value of the latest snapshot for that key.
    """
    record_key = models.CharField(max_length=255, primary_key=True)  # "<agent>-<product>-<YYYY-MM-DD>"
    agent_code = models.CharField(max_length=60)
    agent_name = models.CharField(max_length=255, blank=True, default="")
    product_code = models.CharField(max_length=100)
    product_name = models.CharField(max_length=255, blank=True, default="")
    quantity = models.IntegerField(default=0)
    recorded_day = models.DateField()
    received_at = models.BigIntegerField(editable=False)

    class Meta:
        db_table = "orders"
        indexes = [
            models.Index(fields=["agent_code", "recorded_day"], name="idx_orders_agent_day"),
            models.Index(fields=["recorded_day"], name="idx_orders_day"),
            models.Index(fields=["product_code"], name="idx_orders_product"),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gte=0), name="ck_orders_qty_nonnegative"),
        ]

    def save(self, *args, **kwargs):
        # always use current UTC time in seconds
        self.received_at = int(time.time())
        super().save(*args, **kwargs)

    def __str__(self):
        return self.record_key


class StockEntry(models.Model):
    """Finished goods on hand, shared by every client. Changed by scans, never by orders."""
    product_code = models.CharField(max_length=100, primary_key=True)
    stock_qty = models.IntegerField(default=0)
    last_modified = models.BigIntegerField(editable=False)

    class Meta:
        db_table = "inventory"
        verbose_name_plural = "stock entries"
        constraints = [
            models.CheckConstraint(condition=models.Q(stock_qty__gte=0), name="ck_inventory_qty_nonnegative"),
        ]

    def save(self, *args, **kwargs):
        self.last_modified = int(time.time())
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product_code}: {self.stock_qty}"
