# production/services.py

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from functools import partial
from typing import Dict, Iterable, List, Optional, Tuple

from django.db import DatabaseError, connection, transaction
from django.db.models import F, Max, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from .allocation import allocate, ClientGroup
from .constants import (
    EVENT_ORDER, EVENT_RESET, EVENT_STOCK, RESET_CODE, HISTORY_PERIODS, MAX_UNITS,
)
from .events import bus
from .models import OrderLine, StockEntry
from .normalization import (
    NormalizedLine, make_record_key, normalize_agent_code, normalize_code, normalize_line,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Storage failed; the whole transaction was rolled back and can be retried."""


class StockError(Exception):
    pass


def _set_isolation(level: str) -> None:
    # SET TRANSACTION has to be the first statement of the outermost block
    if connection.vendor == "postgresql":
        with connection.cursor() as cur:
            cur.execute(f"SET TRANSACTION ISOLATION LEVEL {level}")


def _publish_on_commit(type: str, code: Optional[str]) -> None:
    transaction.on_commit(partial(bus.publish, type, code))


# ================== Snapshot reconciliation ==================

@dataclass
class SyncResult:
    day: date
    agents: List[str] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    stock_updates: int = 0


def _collect(zones: Iterable[dict], day: date) -> Tuple[Dict[str, NormalizedLine], Dict[str, set], Dict[str, int], Optional[str]]:
    lines: Dict[str, NormalizedLine] = {}
    seen: Dict[str, set] = defaultdict(set)
    stock_levels: Dict[str, int] = {}
    last_code = None

    for zone in zones:
        agent_code = normalize_agent_code(zone.get("agent_code"))
        seen[agent_code]  # an agent with no products still owns its scope
        for raw in zone.get("products") or []:
            line = normalize_line(zone, raw)
            if not line.product_code:
                continue
            key = make_record_key(line.agent_code, line.product_code, day)
            seen[agent_code].add(key)
            if key in lines:
                # same product twice in one snapshot: both lines are demand of this snapshot
                lines[key].units = min(MAX_UNITS, lines[key].units + line.units)
            else:
                lines[key] = line
            if line.stock_level is not None:
                stock_levels[line.product_code] = line.stock_level
            last_code = line.product_code

    return lines, seen, stock_levels, last_code


def reconcile_snapshot(zones: Iterable[dict], *, day: Optional[date] = None) -> SyncResult:
    """
    Make the ledger mirror one snapshot for every agent it mentions.

    zones = [{"agent_code", "agent_name", "products": [{"code", "name", "quantity", "stock_level"}]}]

    Rows are overwritten (never summed) so replaying a snapshot is harmless; rows of a
    mentioned agent/day that the snapshot no longer carries are deleted. Agents not
    mentioned keep their rows. All or nothing.
    """
    day = day or timezone.localdate()
    lines, seen, stock_levels, last_code = _collect(zones, day)
    result = SyncResult(day=day, agents=sorted(seen))
    now = int(time.time())

    outermost = not connection.in_atomic_block
    try:
        with transaction.atomic():
            if outermost:
                _set_isolation("SERIALIZABLE")

            # lock the scope in key order so two snapshots for the same agent queue up
            existing = set(
                OrderLine.objects.select_for_update()
                .filter(agent_code__in=list(seen), recorded_day=day)
                .order_by("record_key")
                .values_list("record_key", flat=True)
            )

            OrderLine.objects.bulk_create(
                [
                    OrderLine(
                        record_key=key,
                        agent_code=ln.agent_code,
                        agent_name=ln.agent_name,
                        product_code=ln.product_code,
                        product_name=ln.product_name,
                        quantity=ln.units,
                        recorded_day=day,
                        received_at=now,
                    )
                    for key, ln in sorted(lines.items())
                ],
                update_conflicts=True,
                unique_fields=["record_key"],
                update_fields=["quantity", "product_name", "agent_name", "received_at"],
            )
            result.inserted = sum(1 for key in lines if key not in existing)
            result.updated = len(lines) - result.inserted

            for agent_code, keys in seen.items():
                deleted, _ = (
                    OrderLine.objects
                    .filter(agent_code=agent_code, recorded_day=day)
                    .exclude(record_key__in=keys)
                    .delete()
                )
                result.deleted += deleted

            if stock_levels:
                StockEntry.objects.bulk_create(
                    [StockEntry(product_code=code, stock_qty=qty, last_modified=now)
                     for code, qty in sorted(stock_levels.items())],
                    update_conflicts=True,
                    unique_fields=["product_code"],
                    update_fields=["stock_qty", "last_modified"],
                )
                result.stock_updates = len(stock_levels)

            _publish_on_commit(EVENT_ORDER, last_code)
    except DatabaseError as exc:
        logger.exception("snapshot for %s rolled back", day)
        raise PersistenceError(f"snapshot could not be stored: {exc}") from exc

    logger.info(
        "snapshot %s: %d agents, %d inserted, %d updated, %d deleted",
        day, len(result.agents), result.inserted, result.updated, result.deleted,
    )
    return result


# ================== Stock pool ==================

def add_stock(product_code: str, delta_units: int) -> StockEntry:
    """A physical scan: always adds to what is on hand (negative delta = correction)."""
    code = normalize_code(product_code)
    if not code:
        raise StockError("productCode is required")
    if delta_units == 0:
        raise StockError("deltaUnits must be non-zero")

    try:
        with transaction.atomic():
            # insert-or-nothing first: two scans of a new product both land on one row
            StockEntry.objects.bulk_create(
                [StockEntry(product_code=code, stock_qty=0, last_modified=int(time.time()))],
                ignore_conflicts=True,
            )
            entry = StockEntry.objects.select_for_update().get(product_code=code)
            on_hand = entry.stock_qty
            if on_hand + delta_units < 0:
                raise StockError(f"insufficient stock for {code}: have {on_hand}, delta {delta_units}")
            if on_hand + delta_units > MAX_UNITS:
                raise StockError(f"stock for {code} would exceed {MAX_UNITS} units")

            entry.stock_qty = F("stock_qty") + delta_units
            entry.save(update_fields=["stock_qty", "last_modified"])
            entry.refresh_from_db(fields=["stock_qty"])

            _publish_on_commit(EVENT_STOCK, code)
    except DatabaseError as exc:
        logger.exception("stock scan for %s rolled back", code)
        raise PersistenceError(f"stock could not be updated: {exc}") from exc

    logger.info("stock %s %+d -> %d", code, delta_units, entry.stock_qty)
    return entry


def reset_all() -> Tuple[int, int]:
    """Empty the ledger and the stock pool."""
    try:
        with transaction.atomic():
            orders, _ = OrderLine.objects.all().delete()
            stock, _ = StockEntry.objects.all().delete()
            _publish_on_commit(EVENT_RESET, RESET_CODE)
    except DatabaseError as exc:
        logger.exception("reset rolled back")
        raise PersistenceError(f"reset failed: {exc}") from exc

    logger.info("reset: %d order rows, %d stock rows removed", orders, stock)
    return orders, stock


# ================== Read model ==================

def ledger_days() -> Tuple[Optional[date], Optional[date]]:
    """(latest day, previous day) present in the ledger."""
    days = list(
        OrderLine.objects.order_by("-recorded_day")
        .values_list("recorded_day", flat=True)
        .distinct()[:2]
    )
    today = days[0] if days else None
    prior = days[1] if len(days) > 1 else None
    return today, prior


def stock_pool() -> Dict[str, int]:
    return dict(StockEntry.objects.values_list("product_code", "stock_qty"))


def _ledger_rows(today: Optional[date], prior: Optional[date], pool: Dict[str, int]) -> List[dict]:
    if today is None:
        return []
    days = [d for d in (today, prior) if d is not None]
    qs = (
        OrderLine.objects
        .filter(recorded_day__in=days)
        .values("agent_code", "product_code")
        .annotate(
            agent_label=Max("agent_name"),
            product_label=Max("product_name"),
            qty_today=Coalesce(Sum("quantity", filter=Q(recorded_day=today)), 0),
            qty_prior=Coalesce(Sum("quantity", filter=Q(recorded_day=prior)), 0),
        )
        .order_by("agent_code", "product_code")
    )

    rows = []
    for r in qs:
        if prior is None:
            r["qty_prior"] = 0
        if not r["qty_today"] and not r["qty_prior"]:
            continue
        rows.append({
            "agent_code": r["agent_code"],
            "agent_name": r["agent_label"],
            "product_code": r["product_code"],
            "product_name": r["product_label"],
            "total_qty_today": int(r["qty_today"]),
            "total_qty_yesterday": int(r["qty_prior"]),
            "global_stock": int(pool.get(r["product_code"], 0)),
        })
    return rows


def _read_snapshot():
    outermost = not connection.in_atomic_block
    try:
        with transaction.atomic():
            if outermost:
                _set_isolation("REPEATABLE READ")
            today, prior = ledger_days()
            pool = stock_pool()
            rows = _ledger_rows(today, prior, pool)
    except DatabaseError as exc:
        logger.exception("ledger read failed")
        raise PersistenceError(f"ledger could not be read: {exc}") from exc
    return today, prior, rows, pool


def ledger_rows() -> List[dict]:
    """Aggregated rows of the two most recent ledger days, joined with the stock pool."""
    return _read_snapshot()[2]


def build_dashboard() -> List[ClientGroup]:
    _, _, rows, pool = _read_snapshot()
    return allocate(rows, pool)


def daily_history(period: str = "week", *, end: Optional[date] = None) -> List[dict]:
    """Units ordered per day over the period, ending at the latest ledger day. Missing days are 0."""
    days = HISTORY_PERIODS.get(period)
    if days is None:
        raise ValueError(f"unknown period {period!r}")

    try:
        if end is None:
            end = ledger_days()[0] or timezone.localdate()
        start = end - timedelta(days=days - 1)

        per_day = dict(
            OrderLine.objects
            .filter(recorded_day__gte=start, recorded_day__lte=end)
            .values("recorded_day")
            .annotate(total=Sum("quantity"))
            .values_list("recorded_day", "total")
        )
    except DatabaseError as exc:
        logger.exception("history read failed")
        raise PersistenceError(f"history could not be read: {exc}") from exc

    out = []
    d = start
    while d <= end:
        out.append({"date": d.isoformat(), "production": int(per_day.get(d) or 0)})
        d += timedelta(days=1)
    return out
