# Overview: Revenue analytics over saved documents and product stock (top customers, top items, period rollups).

"""
Aggregations operate on plain mappings shaped like Document.to_dict() and
Product.to_dict(), so the same functions serve the HTTP layer, the CLI and
tests without a database round trip per metric.

Failure semantics:
- Input that is not an iterable of mappings raises InputError internally.
- Every public aggregation catches it, logs a warning and returns an empty
  result. Callers never see partial output.
- Missing or non-numeric optional fields (totals, quantities, costs) count
  as 0.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, tzinfo
from functools import wraps

from ..money import cents_or_zero
from vyapaar.time_utils import get_zone, local_date, parse_iso_datetime, utcnow
from .customer_service import normalize_name

logger = logging.getLogger(__name__)

BUCKETINGS = ("day", "week", "month")
UNCATEGORIZED = "Uncategorized"


class InputError(Exception):
    """Aggregation input is not a sequence of document mappings."""
    pass


def _empty_summary() -> dict:
    return {
        "total_revenue_cents": 0,
        "monthly_revenue_cents": 0,
        "today_revenue_cents": 0,
        "total_documents": 0,
        "monthly_documents": 0,
        "today_documents": 0,
        "top_customers": [],
        "top_products": [],
    }


def _empty_on_input_error(empty=list):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except InputError as exc:
                logger.warning("%s skipped: %s", fn.__name__, exc)
                return empty()
        return wrapper
    return decorator


def _records(items, what: str = "document") -> list[Mapping]:
    if items is None or isinstance(items, (str, bytes, Mapping)):
        raise InputError(f"expected a list of {what}s")
    try:
        records = list(items)
    except TypeError:
        raise InputError(f"expected a list of {what}s")
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise InputError(f"{what} at position {index} is not a mapping")
    return records


def _lines(document: Mapping) -> list[Mapping]:
    lines = document.get("lines")
    if not lines:
        return []
    return _records(lines, "line item")


def _zone(tz) -> tzinfo:
    if tz is None or isinstance(tz, tzinfo):
        return tz or get_zone(None)
    return get_zone(tz)


def _issued_at(document: Mapping) -> datetime | None:
    value = document.get("issued_at")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            return None
    return None


def _truncate(rows: list, n: int | None) -> list:
    if n is None:
        return rows
    return rows[:max(int(n), 0)]


@_empty_on_input_error()
def top_customers(documents, n: int | None = 3) -> list[dict]:
    """
    Customers ranked by total spend.

    Names group case- and whitespace-insensitively; the first spelling seen
    is the one displayed. Ties keep encounter order.
    """
    groups: dict[str, dict] = {}
    for document in _records(documents):
        name = document.get("customer_name")
        key = normalize_name(name if isinstance(name, str) else None)
        if not key:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                "name": " ".join(name.split()),
                "total_spend_cents": 0,
                "document_count": 0,
            }
        group["total_spend_cents"] += cents_or_zero(document.get("grand_total_cents"))
        group["document_count"] += 1

    ranked = sorted(groups.values(), key=lambda g: -g["total_spend_cents"])
    return _truncate(ranked, n)


@_empty_on_input_error()
def top_products(documents, n: int | None = 3) -> list[dict]:
    """Line items across all documents, grouped by item name, ranked by revenue."""
    groups: dict[str, dict] = {}
    for document in _records(documents):
        for line in _lines(document):
            name = line.get("name")
            key = normalize_name(name if isinstance(name, str) else None)
            if not key:
                continue
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    "name": " ".join(name.split()),
                    "quantity_sold": 0,
                    "revenue_cents": 0,
                }
            group["quantity_sold"] += cents_or_zero(line.get("quantity"))
            group["revenue_cents"] += cents_or_zero(line.get("line_total_cents"))

    ranked = sorted(groups.values(), key=lambda g: -g["revenue_cents"])
    return _truncate(ranked, n)


def _bucket(day, bucketing: str) -> tuple[str, str]:
    if bucketing == "day":
        return day.isoformat(), day.isoformat()
    if bucketing == "week":
        iso_year, iso_week, _ = day.isocalendar()
        start = day - timedelta(days=day.weekday())
        return f"{iso_year}-W{iso_week:02d}", start.isoformat()
    start = day.replace(day=1)
    return f"{day.year:04d}-{day.month:02d}", start.isoformat()


@_empty_on_input_error()
def period_rollup(documents, bucketing: str = "day", tz=None) -> list[dict]:
    """
    Sales per calendar day, ISO week (Monday start) or month, in the owner's
    timezone, oldest bucket first. Documents without a usable issued_at are
    left out.
    """
    if bucketing not in BUCKETINGS:
        raise ValueError("bucketing must be day, week, or month")
    zone = _zone(tz)

    buckets: dict[str, dict] = {}
    for document in _records(documents):
        issued = _issued_at(document)
        if issued is None:
            continue
        label, start = _bucket(local_date(issued, zone), bucketing)
        row = buckets.setdefault(label, {
            "bucket": label,
            "bucket_start": start,
            "total_sales_cents": 0,
            "document_count": 0,
        })
        row["total_sales_cents"] += cents_or_zero(document.get("grand_total_cents"))
        row["document_count"] += 1

    return sorted(buckets.values(), key=lambda r: r["bucket_start"])


@_empty_on_input_error()
def filter_current_period(documents, period: str = "month", now: datetime | None = None, tz=None) -> list[Mapping]:
    """Documents issued on the same local calendar day ("day") or month ("month") as now."""
    if period not in ("day", "month"):
        raise ValueError("period must be day or month")
    zone = _zone(tz)
    today = local_date(now or utcnow(), zone)

    selected = []
    for document in _records(documents):
        issued = _issued_at(document)
        if issued is None:
            continue
        day = local_date(issued, zone)
        if period == "day" and day == today:
            selected.append(document)
        elif period == "month" and (day.year, day.month) == (today.year, today.month):
            selected.append(document)
    return selected


@_empty_on_input_error()
def category_rollup(documents, n: int | None = None) -> list[dict]:
    """
    Quantity, sales and profit per product category.

    Profit is line total minus quantity * unit cost captured at sale time.
    """
    groups: dict[str, dict] = {}
    for document in _records(documents):
        for line in _lines(document):
            raw = line.get("category")
            category = (raw.strip() if isinstance(raw, str) else "") or UNCATEGORIZED
            quantity = cents_or_zero(line.get("quantity"))
            sales = cents_or_zero(line.get("line_total_cents"))
            cost = quantity * cents_or_zero(line.get("unit_cost_cents"))

            group = groups.setdefault(category, {
                "category": category,
                "total_quantity": 0,
                "total_sales_cents": 0,
                "total_profit_cents": 0,
            })
            group["total_quantity"] += quantity
            group["total_sales_cents"] += sales
            group["total_profit_cents"] += sales - cost

    ranked = sorted(groups.values(), key=lambda g: -g["total_sales_cents"])
    return _truncate(ranked, n)


def _stock_value(product: Mapping) -> int:
    return cents_or_zero(product.get("price_cents")) * cents_or_zero(product.get("quantity_in_stock"))


@_empty_on_input_error()
def inventory_value_by_category(products) -> list[dict]:
    groups: dict[str, dict] = {}
    for product in _records(products, "product"):
        category = product.get("category") or UNCATEGORIZED
        group = groups.setdefault(category, {
            "category": category,
            "product_count": 0,
            "total_quantity": 0,
            "stock_value_cents": 0,
        })
        group["product_count"] += 1
        group["total_quantity"] += cents_or_zero(product.get("quantity_in_stock"))
        group["stock_value_cents"] += _stock_value(product)

    return sorted(groups.values(), key=lambda g: -g["stock_value_cents"])


@_empty_on_input_error()
def top_stock_value(products, n: int | None = 10) -> list[dict]:
    rows = [
        {
            "id": product.get("id"),
            "name": product.get("name"),
            "category": product.get("category") or UNCATEGORIZED,
            "quantity_in_stock": cents_or_zero(product.get("quantity_in_stock")),
            "price_cents": cents_or_zero(product.get("price_cents")),
            "stock_value_cents": _stock_value(product),
        }
        for product in _records(products, "product")
    ]
    rows.sort(key=lambda r: -r["stock_value_cents"])
    return _truncate(rows, n)


@_empty_on_input_error(_empty_summary)
def dashboard_summary(documents, now: datetime | None = None, tz=None, top_n: int = 3) -> dict:
    records = _records(documents)
    now = now or utcnow()
    this_month = filter_current_period(records, "month", now=now, tz=tz)
    today = filter_current_period(records, "day", now=now, tz=tz)

    def _revenue(docs) -> int:
        return sum(cents_or_zero(d.get("grand_total_cents")) for d in docs)

    return {
        "total_revenue_cents": _revenue(records),
        "monthly_revenue_cents": _revenue(this_month),
        "today_revenue_cents": _revenue(today),
        "total_documents": len(records),
        "monthly_documents": len(this_month),
        "today_documents": len(today),
        "top_customers": top_customers(records, top_n),
        "top_products": top_products(records, top_n),
    }
