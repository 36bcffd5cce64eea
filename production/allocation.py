# production/allocation.py
"""
Stock allocation and trends for the live dashboard.

Input rows come from the read model (one per agent/product):
    {"agent_code", "agent_name", "product_code", "product_name",
     "total_qty_today", "total_qty_yesterday", "global_stock"}

Clients are served in a fixed order (priority client first, then by name) and
each one takes what it can from the shared pool before the next client gets a
look. The pool passed in is copied; nothing is written back.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from django.conf import settings

from .constants import TOP_PRODUCTS_LIMIT
from .normalization import client_name, parse_number


def trend_pct(current, prior) -> float:
    """% change vs the previous day. New activity (0 -> n) is reported as 100, not infinite."""
    current = parse_number(current)
    prior = parse_number(prior)
    if prior == 0:
        return 100.0 if current > 0 else 0.0
    return ((current - prior) / prior) * 100


@dataclass
class ProductView:
    code: str
    name: str
    qty: int = 0
    yesterday_qty: int = 0
    stock: int = 0
    to_produce: int = 0
    trend_pct: float = 0.0


@dataclass
class ClientGroup:
    name: str
    products: List[ProductView] = field(default_factory=list)
    total_today: int = 0
    total_yesterday: int = 0
    trend_pct: float = 0.0

    def product(self, code: str) -> Optional[ProductView]:
        for p in self.products:
            if p.code == code:
                return p
        return None


@dataclass
class DashboardSummary:
    total_production: int
    total_stock: int
    total_to_produce: int
    active_zones: int
    average_per_zone: int
    efficiency: float
    top_products: List[dict]


def _as_int(value) -> int:
    return int(parse_number(value))


def client_sort_key(name: str, priority: Optional[str] = None):
    if priority is None:
        priority = getattr(settings, "PRIORITY_CLIENT", "")
    return (0 if name == priority else 1, name)


def group_by_client(rows: Iterable[dict]) -> List[ClientGroup]:
    """Steps 1-2: resolve client names, merge product lines, fixed client order."""
    groups: Dict[str, ClientGroup] = {}
    for row in rows:
        today = _as_int(row.get("total_qty_today"))
        yesterday = _as_int(row.get("total_qty_yesterday"))
        if today == 0 and yesterday == 0 and _as_int(row.get("global_stock")) == 0:
            continue

        name = client_name(row.get("agent_code"))
        group = groups.get(name)
        if group is None:
            group = groups[name] = ClientGroup(name=name)

        code = str(row.get("product_code") or "")
        product = group.product(code)
        if product is None:
            product = ProductView(code=code, name=str(row.get("product_name") or code))
            group.products.append(product)
        product.qty += today
        product.yesterday_qty += yesterday

        group.total_today += today
        group.total_yesterday += yesterday

    return sorted(groups.values(), key=lambda g: client_sort_key(g.name))


def allocate(rows: Iterable[dict], stock_pool: Optional[Dict[str, int]] = None) -> List[ClientGroup]:
    """
    Build the client view. When `stock_pool` is None the pool is taken from the
    rows' `global_stock` column.
    """
    rows = list(rows)
    if stock_pool is None:
        remaining = {str(r.get("product_code") or ""): _as_int(r.get("global_stock")) for r in rows}
    else:
        remaining = {code: _as_int(qty) for code, qty in stock_pool.items()}

    clients = group_by_client(rows)
    for client in clients:
        client.trend_pct = trend_pct(client.total_today, client.total_yesterday)
        for p in client.products:
            available = max(0, remaining.get(p.code, 0))
            assigned = min(p.qty, available)
            p.stock = assigned
            p.to_produce = max(0, p.qty - assigned)
            p.trend_pct = trend_pct(p.qty, p.yesterday_qty)
            remaining[p.code] = available - assigned
        client.products.sort(key=lambda p: p.qty, reverse=True)

    return [c for c in clients if c.total_today > 0]


def summarize(clients: List[ClientGroup], limit: int = TOP_PRODUCTS_LIMIT) -> DashboardSummary:
    total = sum(p.qty for c in clients for p in c.products)
    stock = sum(p.stock for c in clients for p in c.products)
    to_produce = sum(p.to_produce for c in clients for p in c.products)
    zones = len(clients)

    if total > 0:
        efficiency = min(99.9, ((total - max(0, total - stock)) / total) * 100)
    else:
        efficiency = 100.0

    volume: Dict[str, int] = {}
    for c in clients:
        for p in c.products:
            volume[p.name] = volume.get(p.name, 0) + p.qty
    top = sorted(volume.items(), key=lambda kv: kv[1], reverse=True)[:limit]

    return DashboardSummary(
        total_production=total,
        total_stock=stock,
        total_to_produce=to_produce,
        active_zones=zones,
        average_per_zone=round(total / zones) if zones else 0,
        efficiency=round(efficiency, 1),
        top_products=[{"name": name, "qty": qty} for name, qty in top],
    )
