# quoting.py — Quote calculator
"""
Derives a market (comparison) price and our actual price from the estimated
hours on a project's tasks. Pure: reads its inputs, writes nothing. Saving a
quote is a separate upsert in routers/quotes.py.
"""
import os
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Optional

from models import TaskPriority

# MARKET RATES (hypothetical senior agency)
MARKET_HOURLY_RATE = float(os.getenv("QUOTE_MARKET_HOURLY_RATE", "120"))
MARKET_BASE_FEE = float(os.getenv("QUOTE_MARKET_BASE_FEE", "3500"))
URGENT_SURCHARGE = float(os.getenv("QUOTE_URGENT_SURCHARGE", "150"))

# OUR RATES (actual)
OUR_HOURLY_RATE = float(os.getenv("QUOTE_OUR_HOURLY_RATE", "60"))
OUR_BASE_FEE = float(os.getenv("QUOTE_OUR_BASE_FEE", "900"))

SURCHARGED_PRIORITIES = {TaskPriority.HIGH.value, TaskPriority.URGENT.value}


@dataclass
class QuoteBreakdown:
    base: float
    hours: float
    surcharge: float


@dataclass
class QuoteAnalysis:
    total_hours: float
    market_price: float
    our_price: float
    savings: float
    breakdown: QuoteBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _priority_value(priority: Any) -> Optional[str]:
    return priority.value if isinstance(priority, TaskPriority) else priority


def calculate_quote(tasks: Iterable[Any], existing_quote: Any = None) -> QuoteAnalysis:
    """Price a project from its tasks.

    ``tasks`` may be ORM rows or dicts with ``estimated_hours`` and
    ``priority``. The base fees apply only once there is something to price:
    at least one task, or a quote already on record. A persisted
    ``total_amount`` overrides our computed price; the market price is always
    recomputed.
    """
    tasks = list(tasks)
    total_hours = sum(float(_field(t, "estimated_hours") or 0) for t in tasks)
    surcharged = sum(1 for t in tasks if _priority_value(_field(t, "priority")) in SURCHARGED_PRIORITIES)

    has_basis = bool(tasks) or existing_quote is not None

    market_base = MARKET_BASE_FEE if has_basis else 0.0
    market_hours = total_hours * MARKET_HOURLY_RATE
    surcharge = surcharged * URGENT_SURCHARGE
    market_price = market_base + market_hours + surcharge

    our_price = (OUR_BASE_FEE if has_basis else 0.0) + total_hours * OUR_HOURLY_RATE
    persisted = _field(existing_quote, "total_amount") if existing_quote is not None else None
    effective_price = float(persisted) if persisted is not None else our_price

    return QuoteAnalysis(
        total_hours=total_hours,
        market_price=market_price,
        our_price=effective_price,
        savings=max(0.0, market_price - effective_price),
        breakdown=QuoteBreakdown(base=market_base, hours=market_hours, surcharge=surcharge),
    )
