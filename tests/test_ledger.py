import pytest

from cash_exchange.exceptions import AccountNotFoundError, InsufficientFundsError, ValidationError
from cash_exchange.services import PLATFORM_ACCOUNT


def test_new_user_starts_at_zero(make_user, ledger):
    user = make_user()
    assert ledger.balance_of(user.id) == 0


def test_deposit_credits_wallet(make_user, ledger, db):
    user = make_user()
    assert ledger.deposit(user.id, 750) == 750
    db.commit()
    assert ledger.balance_of(user.id) == 750


def test_debit_refuses_to_go_negative(make_user, ledger):
    user = make_user(balance=100)
    account = ledger.user_account(user.id)
    balance = ledger.lock_balances([account.id])[account.id]
    with pytest.raises(InsufficientFundsError):
        ledger.debit(balance, 101)
    assert balance.balance == 100


def test_debit_and_credit(make_user, ledger):
    payer = make_user(balance=300)
    payee = make_user()
    accounts = [ledger.user_account(payer.id), ledger.user_account(payee.id)]
    balances = ledger.lock_balances([a.id for a in accounts])
    assert ledger.debit(balances[accounts[0].id], 120) == 180
    assert ledger.credit(balances[accounts[1].id], 120) == 120


@pytest.mark.parametrize("amount", [0, -5])
def test_debit_rejects_non_positive(make_user, ledger, amount):
    user = make_user(balance=10)
    account = ledger.user_account(user.id)
    balance = ledger.lock_balances([account.id])[account.id]
    with pytest.raises(ValidationError):
        ledger.debit(balance, amount)


def test_lock_balances_requires_every_row(make_user, ledger):
    user = make_user()
    account = ledger.user_account(user.id)
    with pytest.raises(AccountNotFoundError):
        ledger.lock_balances([account.id, 99999])


def test_unknown_user_has_no_account(ledger):
    with pytest.raises(AccountNotFoundError):
        ledger.balance_of(424242)


def test_platform_account_is_singleton(ledger):
    first = ledger.platform_account()
    second = ledger.platform_account()
    assert first.id == second.id
    assert first.system_name == PLATFORM_ACCOUNT
