from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="OrderLine",
            fields=[
                ("record_key", models.CharField(max_length=255, primary_key=True, serialize=False)),
                ("agent_code", models.CharField(max_length=60)),
                ("agent_name", models.CharField(blank=True, default="", max_length=255)),
                ("product_code", models.CharField(max_length=100)),
                ("product_name", models.CharField(blank=True, default="", max_length=255)),
                ("quantity", models.IntegerField(default=0)),
                ("recorded_day", models.DateField()),
                ("received_at", models.BigIntegerField(editable=False)),
            ],
            options={
                "db_table": "orders",
                "indexes": [
                    models.Index(fields=["agent_code", "recorded_day"], name="idx_orders_agent_day"),
                    models.Index(fields=["recorded_day"], name="idx_orders_day"),
                    models.Index(fields=["product_code"], name="idx_orders_product"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 0)), name="ck_orders_qty_nonnegative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockEntry",
            fields=[
                ("product_code", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("stock_qty", models.IntegerField(default=0)),
                ("last_modified", models.BigIntegerField(editable=False)),
            ],
            options={
                "db_table": "inventory",
                "verbose_name_plural": "stock entries",
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("stock_qty__gte", 0)), name="ck_inventory_qty_nonnegative"),
                ],
            },
        ),
    ]
