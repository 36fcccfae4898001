from datetime import date

from goalcast.schemas.forecasting import TransactionEvent
from goalcast.services.trends import calculate_financial_trends, fetch_recent_transactions


def _t(month, amount, type):
    return TransactionEvent(date=date(2024, month, 10), amount=amount, type=type)


def test_empty_history():
    trends = calculate_financial_trends([])

    assert trends.monthly_income == 0
    assert trends.monthly_expenses == 0
    assert trends.monthly_surplus == 0
    assert trends.income_trend == "stable"
    assert trends.expense_trend == "stable"


def test_flat_income_and_expenses():
    transactions = [_t(m, 6000, "income") for m in range(1, 7)] + [_t(m, 3000, "expense") for m in range(1, 7)]

    trends = calculate_financial_trends(transactions)

    assert trends.monthly_income == 6000
    assert trends.monthly_expenses == 3000
    assert trends.monthly_surplus == 3000
    assert trends.income_trend == "stable"
    assert trends.expense_trend == "stable"


def test_totals_are_divided_by_the_window_not_active_months():
    trends = calculate_financial_trends([_t(3, 1200, "income")])

    assert trends.monthly_income == 200
    assert trends.income_trend == "stable"


def test_rising_expenses_in_any_input_order():
    amounts = {1: 100, 2: 100, 3: 100, 4: 200, 5: 200, 6: 200}
    transactions = [_t(m, amounts[m], "expense") for m in sorted(amounts, reverse=True)]

    trends = calculate_financial_trends(transactions)

    assert trends.expense_trend == "increasing"
    assert trends.monthly_expenses == 150
    assert trends.monthly_surplus == -150


def test_falling_income():
    trends = calculate_financial_trends([
        _t(1, 1000, "income"), _t(2, 1000, "income"), _t(3, 500, "income"), _t(4, 500, "income"),
    ])

    assert trends.income_trend == "decreasing"


def test_type_matching_is_case_insensitive():
    trends = calculate_financial_trends([_t(1, 600, "Income"), _t(1, 300, "EXPENSE")])

    assert trends.monthly_income == 100
    assert trends.monthly_expenses == 50


async def test_fetch_recent_transactions_filters_user_and_window(db, add_transaction, today):
    await add_transaction(100, date(2024, 6, 1), type="income")
    await add_transaction(50, date(2023, 11, 1))
    await add_transaction(70, date(2024, 6, 2), user_id="user-2")

    events = await fetch_recent_transactions(db, "user-1", today)

    assert [(e.amount, e.type) for e in events] == [(100, "income")]
