"""Tests for the quote calculator."""
from quoting import calculate_quote
from models import ProjectQuote, TaskPriority


def test_no_tasks_no_quote_prices_nothing():
    analysis = calculate_quote([])
    assert analysis.total_hours == 0
    assert analysis.market_price == 0
    assert analysis.our_price == 0
    assert analysis.savings == 0
    assert analysis.breakdown.base == 0


def test_existing_quote_alone_applies_base_fees():
    analysis = calculate_quote([], {"total_amount": None})
    assert analysis.market_price == 3500
    assert analysis.our_price == 900
    assert analysis.savings == 2600


def test_ten_medium_hours():
    analysis = calculate_quote([{"estimated_hours": 10, "priority": "medium"}])
    assert analysis.total_hours == 10
    assert analysis.market_price == 4700
    assert analysis.our_price == 1500
    assert analysis.savings == 3200
    assert analysis.breakdown.base == 3500
    assert analysis.breakdown.hours == 1200
    assert analysis.breakdown.surcharge == 0


def test_surcharge_for_high_and_urgent():
    tasks = [
        {"estimated_hours": 2, "priority": "high"},
        {"estimated_hours": 3, "priority": TaskPriority.URGENT},
        {"estimated_hours": 1, "priority": "low"},
    ]
    analysis = calculate_quote(tasks)
    assert analysis.total_hours == 6
    assert analysis.breakdown.surcharge == 300
    assert analysis.market_price == 3500 + 6 * 120 + 300


def test_missing_hours_count_as_zero():
    analysis = calculate_quote([{"estimated_hours": None, "priority": "medium"}, {}])
    assert analysis.total_hours == 0
    assert analysis.market_price == 3500


def test_persisted_amount_overrides_our_price():
    quote = ProjectQuote(project_id="p1", total_amount=2000)
    analysis = calculate_quote([{"estimated_hours": 10, "priority": "medium"}], quote)
    assert analysis.our_price == 2000
    assert analysis.market_price == 4700
    assert analysis.savings == 2700


def test_savings_never_negative():
    analysis = calculate_quote([{"estimated_hours": 1, "priority": "low"}], {"total_amount": 99999})
    assert analysis.savings == 0


def test_zero_amount_is_a_real_price():
    analysis = calculate_quote([{"estimated_hours": 1, "priority": "low"}], {"total_amount": 0})
    assert analysis.our_price == 0
    assert analysis.savings == analysis.market_price


def test_to_dict_shape():
    data = calculate_quote([{"estimated_hours": 1, "priority": "low"}]).to_dict()
    assert set(data) == {"total_hours", "market_price", "our_price", "savings", "breakdown"}
    assert set(data["breakdown"]) == {"base", "hours", "surcharge"}
