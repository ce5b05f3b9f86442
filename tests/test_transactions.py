import pytest
from datetime import date
from decimal import Decimal
from pydantic import ValidationError

from vantage.crud import crud_transaction
from vantage.crud.crud_transaction import (
    record_transaction, read_db_transactions, read_transaction_page, update_db_transaction,
    delete_db_transaction, convert_transfer_amount,
)
from vantage.crud.crud_account import get_balances, adjust_account_balance
from vantage.db.core import AccountDB, TransactionDB, TransactionType
from vantage.errors import (
    UnsupportedCurrencyPairError, MissingExchangeRateError, InvalidExchangeRateError,
    BalanceUpdateFailedError, NotFoundError, InvalidPayloadError,
)
from vantage.models.transaction import TransactionCreate, TransactionUpdate, TransactionFilter


def _transfer(source, destination, amount, exchange_rate=None, **kwargs):
    return TransactionCreate(
        account_id=source.id,
        destination_account_id=destination.id,
        transaction_type="TRANSFER",
        amount=Decimal(amount),
        transaction_date=kwargs.pop("transaction_date", date(2026, 10, 10)),
        exchange_rate=exchange_rate,
        **kwargs
    )


def _stored_balance(db, account):
    return db.get(AccountDB, account.id).balance


# ===== TRANSFERS =====

def test_cross_currency_transfer(db, user, make_account):
    usd = make_account(name="Dollar Checking", currency="USD", balance="1000.00")
    birr = make_account(name="Birr Savings", currency="BIRR", balance="0")

    recorded = record_transaction(db, user.db_id, _transfer(usd, birr, "100.00", exchange_rate="120"))

    assert _stored_balance(db, usd) == Decimal("900.00")
    assert _stored_balance(db, birr) == Decimal("12000.00")

    rows = db.query(TransactionDB).all()
    assert len(rows) == 1
    assert rows[0].id == recorded.id
    assert rows[0].transaction_type == TransactionType.TRANSFER
    assert rows[0].account_id == usd.id
    assert rows[0].amount == Decimal("100.00")
    assert rows[0].category_id is None


def test_derived_balances_after_transfer(db, user, make_account):
    usd = make_account(name="Dollar Checking", currency="USD", balance="1000.00")
    birr = make_account(name="Birr Savings", currency="BIRR", balance="0")

    record_transaction(db, user.db_id, _transfer(usd, birr, "100.00", exchange_rate="120"))

    balances = {b.account_id: b.current_balance for b in get_balances(db, user.db_id)}
    assert balances[usd.id] == Decimal("900.00")
    assert balances[birr.id] == Decimal("12000.00")


def test_birr_to_usd_transfer_divides(db, user, make_account):
    birr = make_account(name="Birr Savings", currency="BIRR", balance="5000.00")
    usd = make_account(name="Dollar Checking", currency="USD", balance="0")

    record_transaction(db, user.db_id, _transfer(birr, usd, "1200.00", exchange_rate="120"))

    assert _stored_balance(db, birr) == Decimal("3800.00")
    assert _stored_balance(db, usd) == Decimal("10.00")


def test_etb_account_is_treated_as_birr(db, user, make_account):
    usd = make_account(name="Dollar Checking", currency="USD", balance="10.00")
    etb = make_account(name="Telebirr", currency="ETB", balance="0")

    record_transaction(db, user.db_id, _transfer(usd, etb, "10.00", exchange_rate="1,20"))

    assert _stored_balance(db, etb) == Decimal("1200.00")


def test_same_currency_transfer_needs_no_rate(db, user, make_account):
    checking = make_account(name="Checking", balance="500.00")
    savings = make_account(name="Savings", balance="0", account_type="SAVINGS")

    record_transaction(db, user.db_id, _transfer(checking, savings, "125.00"))

    assert _stored_balance(db, checking) == Decimal("375.00")
    assert _stored_balance(db, savings) == Decimal("125.00")


def test_same_currency_transfer_ignores_an_invalid_rate(db, user, make_account):
    checking = make_account(name="Checking", balance="500.00")
    savings = make_account(name="Savings", balance="0", account_type="SAVINGS")

    record_transaction(db, user.db_id, _transfer(checking, savings, "20.00", exchange_rate="not-a-number"))

    assert _stored_balance(db, savings) == Decimal("20.00")


def test_sequential_transfers_are_additive(db, user, make_account):
    checking = make_account(name="Checking", balance="1000.00")
    savings = make_account(name="Savings", balance="0", account_type="SAVINGS")

    for amount in ("100.00", "50.00", "25.25"):
        record_transaction(db, user.db_id, _transfer(checking, savings, amount))

    assert _stored_balance(db, checking) == Decimal("824.75")
    assert _stored_balance(db, savings) == Decimal("175.25")
    assert db.query(TransactionDB).count() == 3


def test_overlapping_sessions_do_not_lose_a_transfer(session_factory, user, make_account):
    checking = make_account(name="Checking", balance="1000.00")
    birr = make_account(name="Birr Savings", currency="BIRR", balance="0", account_type="SAVINGS")
    user_id = user.db_id

    first, second = session_factory(), session_factory()
    try:
        # Both sessions hold the source account at 1000.00 before either writes
        assert first.get(AccountDB, checking.id).balance == Decimal("1000.00")
        assert second.get(AccountDB, checking.id).balance == Decimal("1000.00")

        record_transaction(first, user_id, _transfer(checking, birr, "100.00", exchange_rate="120"))
        record_transaction(second, user_id, _transfer(checking, birr, "250.00", exchange_rate="120"))
    finally:
        first.close()
        second.close()

    fresh = session_factory()
    try:
        assert fresh.get(AccountDB, checking.id).balance == Decimal("650.00")
        assert fresh.get(AccountDB, birr.id).balance == Decimal("42000.00")
        assert fresh.query(TransactionDB).count() == 2
    finally:
        fresh.close()


def test_unsupported_pair_leaves_no_trace(db, user, make_account):
    eur = make_account(name="Euro", currency="EUR", balance="100.00")
    gbp = make_account(name="Pound", currency="GBP", balance="100.00")

    with pytest.raises(UnsupportedCurrencyPairError):
        record_transaction(db, user.db_id, _transfer(eur, gbp, "10.00", exchange_rate="1.2"))

    assert db.query(TransactionDB).count() == 0
    assert _stored_balance(db, eur) == Decimal("100.00")
    assert _stored_balance(db, gbp) == Decimal("100.00")


def test_cross_currency_transfer_requires_rate(db, user, make_account):
    usd = make_account(name="Dollar Checking", currency="USD", balance="100.00")
    birr = make_account(name="Birr Savings", currency="BIRR")

    with pytest.raises(MissingExchangeRateError):
        record_transaction(db, user.db_id, _transfer(usd, birr, "10.00"))

    assert db.query(TransactionDB).count() == 0


@pytest.mark.parametrize("rate", ["0", "-120", "abc"])
def test_cross_currency_transfer_rejects_invalid_rate(db, user, make_account, rate):
    usd = make_account(name="Dollar Checking", currency="USD", balance="100.00")
    birr = make_account(name="Birr Savings", currency="BIRR")

    with pytest.raises(InvalidExchangeRateError):
        record_transaction(db, user.db_id, _transfer(usd, birr, "10.00", exchange_rate=rate))

    assert db.query(TransactionDB).count() == 0
    assert _stored_balance(db, usd) == Decimal("100.00")


def test_failed_balance_update_rolls_back_everything(db, user, make_account, monkeypatch):
    checking = make_account(name="Checking", balance="1000.00")
    savings = make_account(name="Savings", balance="0", account_type="SAVINGS")

    def adjust_only_source(session, user_id, account_id, delta):
        if account_id == savings.id:
            return False
        return adjust_account_balance(session, user_id, account_id, delta)

    monkeypatch.setattr(crud_transaction, "adjust_account_balance", adjust_only_source)

    with pytest.raises(BalanceUpdateFailedError):
        record_transaction(db, user.db_id, _transfer(checking, savings, "100.00"))

    assert db.query(TransactionDB).count() == 0
    assert _stored_balance(db, checking) == Decimal("1000.00")
    assert _stored_balance(db, savings) == Decimal("0.00")


def test_transfer_to_account_of_other_user_is_rejected(db, user, other_user, make_account):
    mine = make_account(name="Mine", balance="100.00")
    theirs = make_account(name="Theirs", owner=other_user)

    with pytest.raises(NotFoundError):
        record_transaction(db, user.db_id, _transfer(mine, theirs, "10.00"))

    assert _stored_balance(db, mine) == Decimal("100.00")


def test_convert_transfer_amount():
    assert convert_transfer_amount(Decimal("5"), "USD", "usd", None) == Decimal("5")
    assert convert_transfer_amount(Decimal("5"), "USD", "BIRR", "100") == Decimal("500")
    with pytest.raises(UnsupportedCurrencyPairError):
        convert_transfer_amount(Decimal("5"), "USD", "EUR", "1.1")


# ===== PAYLOAD RULES =====

def test_transfer_needs_a_destination():
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, transaction_type="TRANSFER", amount=Decimal("1"), transaction_date=date(2026, 1, 1))


def test_transfer_destination_must_differ():
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, destination_account_id=1, transaction_type="TRANSFER",
                          amount=Decimal("1"), transaction_date=date(2026, 1, 1))


def test_transfer_cannot_have_a_category():
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, destination_account_id=2, category_id=3, transaction_type="TRANSFER",
                          amount=Decimal("1"), transaction_date=date(2026, 1, 1))


def test_exchange_rate_only_for_transfers():
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, transaction_type="EXPENSE", amount=Decimal("1"),
                          transaction_date=date(2026, 1, 1), exchange_rate="120")


def test_income_cannot_have_a_category():
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, category_id=2, transaction_type="INCOME", amount=Decimal("1"),
                          transaction_date=date(2026, 1, 1))


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_amount_must_be_positive(amount):
    with pytest.raises(ValidationError):
        TransactionCreate(account_id=1, transaction_type="EXPENSE", amount=Decimal(amount),
                          transaction_date=date(2026, 1, 1))


def test_numeric_exchange_rate_is_kept_as_text():
    data = TransactionCreate(account_id=1, destination_account_id=2, transaction_type="TRANSFER",
                             amount=Decimal("1"), transaction_date=date(2026, 1, 1), exchange_rate=120.5)
    assert data.exchange_rate == "120.5"


# ===== INCOME AND EXPENSE =====

def test_expense_with_income_category_is_rejected(db, user, make_account, make_category):
    account = make_account(balance="100.00")
    salary = make_category(name="Salary", category_type="INCOME")

    with pytest.raises(InvalidPayloadError):
        record_transaction(db, user.db_id, TransactionCreate(
            account_id=account.id, category_id=salary.id, transaction_type="EXPENSE",
            amount=Decimal("5"), transaction_date=date(2026, 10, 1)
        ))


def test_expense_with_foreign_category_is_rejected(db, user, other_user, make_account, make_category):
    account = make_account(balance="100.00")
    foreign = make_category(name="Theirs", owner=other_user)

    with pytest.raises(NotFoundError):
        record_transaction(db, user.db_id, TransactionCreate(
            account_id=account.id, category_id=foreign.id, transaction_type="EXPENSE",
            amount=Decimal("5"), transaction_date=date(2026, 10, 1)
        ))


def test_expense_on_foreign_account_is_rejected(db, user, other_user, make_account):
    theirs = make_account(name="Theirs", owner=other_user)

    with pytest.raises(NotFoundError):
        record_transaction(db, user.db_id, TransactionCreate(
            account_id=theirs.id, transaction_type="EXPENSE", amount=Decimal("5"), transaction_date=date(2026, 10, 1)
        ))


# ===== READ / UPDATE / DELETE =====

def _record_expense(db, user, account, amount, day, category=None):
    return record_transaction(db, user.db_id, TransactionCreate(
        account_id=account.id, transaction_type="EXPENSE", amount=Decimal(amount),
        transaction_date=date(2026, 10, day), category_id=category.id if category else None
    ))


def test_transactions_are_listed_newest_first(db, user, make_account):
    account = make_account(balance="100.00")
    first = _record_expense(db, user, account, "1.00", 3)
    second = _record_expense(db, user, account, "2.00", 9)
    third = _record_expense(db, user, account, "3.00", 9)

    ids = [row.id for row in read_db_transactions(db, user.db_id)]
    assert ids == [third.id, second.id, first.id]


def test_transaction_filters(db, user, make_account, make_category):
    checking = make_account(name="Checking", balance="100.00")
    cash = make_account(name="Cash", balance="100.00", account_type="CASH")
    groceries = make_category()
    _record_expense(db, user, checking, "1.00", 2, groceries)
    _record_expense(db, user, checking, "2.00", 12)
    _record_expense(db, user, cash, "3.00", 20, groceries)

    by_account = read_db_transactions(db, user.db_id, TransactionFilter(account_id=cash.id))
    assert [row.amount for row in by_account] == [Decimal("3.00")]

    uncategorized = read_db_transactions(db, user.db_id, TransactionFilter(category_id="uncategorized"))
    assert [row.amount for row in uncategorized] == [Decimal("2.00")]

    by_category = read_db_transactions(db, user.db_id, TransactionFilter(category_id=str(groceries.id)))
    assert len(by_category) == 2

    in_range = read_db_transactions(db, user.db_id, TransactionFilter(date_from=date(2026, 10, 10), date_to=date(2026, 10, 15)))
    assert [row.amount for row in in_range] == [Decimal("2.00")]


def test_transaction_pages(db, user, make_account):
    account = make_account(balance="100.00")
    for day in range(1, 6):
        _record_expense(db, user, account, "1.00", day)

    rows, has_next = read_transaction_page(db, user.db_id, skip=0, limit=2)
    assert len(rows) == 2 and has_next

    rows, has_next = read_transaction_page(db, user.db_id, skip=4, limit=2)
    assert len(rows) == 1 and not has_next


def test_update_expense_amount(db, user, make_account):
    account = make_account(balance="1000.00")
    expense = _record_expense(db, user, account, "200.00", 5)

    update_db_transaction(db, expense.id, user.db_id, TransactionUpdate(amount=Decimal("150.00")))

    assert get_balances(db, user.db_id)[0].current_balance == Decimal("850.00")


def test_turning_expense_into_income_drops_its_category(db, user, make_account, make_category):
    account = make_account(balance="100.00")
    expense = _record_expense(db, user, account, "10.00", 5, make_category())

    updated = update_db_transaction(db, expense.id, user.db_id, TransactionUpdate(transaction_type="INCOME"))

    assert updated.transaction_type == TransactionType.INCOME
    assert updated.category_id is None


def test_category_on_income_update_is_rejected(db, user, make_account, make_category):
    account = make_account(balance="100.00")
    groceries = make_category()
    income = record_transaction(db, user.db_id, TransactionCreate(
        account_id=account.id, transaction_type="INCOME", amount=Decimal("10"), transaction_date=date(2026, 10, 1)
    ))

    with pytest.raises(InvalidPayloadError):
        update_db_transaction(db, income.id, user.db_id, TransactionUpdate(category_id=groceries.id))


def test_transfers_cannot_be_edited(db, user, make_account):
    checking = make_account(name="Checking", balance="100.00")
    savings = make_account(name="Savings", account_type="SAVINGS")
    transfer = record_transaction(db, user.db_id, _transfer(checking, savings, "10.00"))

    with pytest.raises(InvalidPayloadError):
        update_db_transaction(db, transfer.id, user.db_id, TransactionUpdate(amount=Decimal("20.00")))


def test_nothing_can_be_turned_into_a_transfer():
    with pytest.raises(ValidationError):
        TransactionUpdate(transaction_type="TRANSFER")


def test_delete_expense_restores_derived_balance(db, user, make_account):
    account = make_account(balance="100.00")
    expense = _record_expense(db, user, account, "30.00", 5)

    delete_db_transaction(db, expense.id, user.db_id)

    assert get_balances(db, user.db_id)[0].current_balance == Decimal("100.00")


def test_delete_transfer_keeps_stored_balances(db, user, make_account):
    checking = make_account(name="Checking", balance="100.00")
    savings = make_account(name="Savings", account_type="SAVINGS")
    transfer = record_transaction(db, user.db_id, _transfer(checking, savings, "10.00"))

    delete_db_transaction(db, transfer.id, user.db_id)

    assert db.query(TransactionDB).count() == 0
    assert _stored_balance(db, checking) == Decimal("90.00")
    assert _stored_balance(db, savings) == Decimal("10.00")


def test_delete_transaction_of_other_user_fails(db, user, other_user, make_account):
    account = make_account(balance="100.00")
    expense = _record_expense(db, user, account, "1.00", 1)

    with pytest.raises(NotFoundError):
        delete_db_transaction(db, expense.id, other_user.db_id)
