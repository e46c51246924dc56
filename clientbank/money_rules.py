"""
Money Rules Module

Pure, stateless balance arithmetic for each account type. Every function
takes the current values and returns new ones, or raises a MoneyRuleError
subclass. Nothing here touches storage or mutates its arguments.
"""

from decimal import Decimal
from typing import Tuple

from .errors import InvalidAmount, LimitExceeded, LimitReached, InsufficientFunds
from .money import Number, to_money, to_decimal, percentage_of, HUNDRED


def _positive_amount(amount: Number, operation: str) -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise InvalidAmount(f"{operation} amount must be positive, got {value}")
    return value


def deposit(balance: Number, amount: Number) -> Decimal:
    """Deposit into a checking or savings account"""
    value = _positive_amount(amount, "Deposit")
    return to_money(to_money(balance) + value)


def checking_withdraw(balance: Number, amount: Number,
                      overdraft_limit: Number, overdraft_fee: Number) -> Decimal:
    """
    Withdraw from a checking account.
    
    The balance may go negative down to -overdraft_limit. When the balance
    after the withdrawal is below zero the overdraft fee is charged on top;
    a result of exactly zero is not charged.
    """
    value = _positive_amount(amount, "Withdrawal")
    new_balance = to_money(balance) - value
    
    if new_balance < -to_money(overdraft_limit):
        raise LimitExceeded(
            f"Withdrawal of {value} would exceed overdraft limit of {to_money(overdraft_limit)}"
        )
    
    if new_balance < 0:
        new_balance -= to_money(overdraft_fee)
    
    return to_money(new_balance)


def savings_withdraw(balance: Number, amount: Number,
                     withdrawal_counter: int, withdrawal_limit: int) -> Tuple[Decimal, int]:
    """
    Withdraw from a savings account, returning (new_balance, new_counter).
    
    The period cap is checked before anything else, so an exhausted
    account refuses every withdrawal whatever the amount.
    """
    if withdrawal_counter >= withdrawal_limit:
        raise LimitReached(
            f"Withdrawal limit of {withdrawal_limit} reached for this period"
        )
    
    value = _positive_amount(amount, "Withdrawal")
    
    new_balance = to_money(balance) - value
    if new_balance < 0:
        raise InsufficientFunds(
            f"Insufficient funds: balance {to_money(balance)}, requested {value}"
        )
    
    return to_money(new_balance), withdrawal_counter + 1


def apply_interest(balance: Number, interest_rate: Number) -> Decimal:
    """Add balance * rate/100 to the balance. A zero rate leaves it unchanged."""
    current = to_money(balance)
    if to_decimal(interest_rate) == 0:
        return current
    return to_money(current + percentage_of(current, interest_rate))


def charge_credit(balance: Number, amount: Number, credit_limit: Number) -> Decimal:
    """Draw on a credit line. Balances are <= 0 and may not drop below -credit_limit."""
    value = _positive_amount(amount, "Charge")
    new_balance = to_money(balance) - value
    
    if new_balance < -to_money(credit_limit):
        raise LimitExceeded(
            f"Charge of {value} would exceed credit limit of {to_money(credit_limit)}"
        )
    
    return to_money(new_balance)


def make_payment(balance: Number, amount: Number, credit_limit: Number) -> Decimal:
    """
    Record a payment on a credit line.
    
    Zero is accepted; negative amounts are not. The -credit_limit floor is
    checked the same way as for charges.
    """
    value = to_money(amount)
    if value < 0:
        raise InvalidAmount(f"Payment amount cannot be negative, got {value}")
    
    new_balance = to_money(balance) - value
    if new_balance < -to_money(credit_limit):
        raise LimitExceeded(
            f"Payment of {value} would exceed credit limit of {to_money(credit_limit)}"
        )
    
    return to_money(new_balance)


def minimum_payment(balance: Number, min_payment_percentage: Number) -> Decimal:
    """Minimum payment due: |balance| * pct/100"""
    return percentage_of(abs(to_money(balance)), min_payment_percentage)


def increased_credit_limit(credit_limit: Number, increase_percent: Number = 10) -> Decimal:
    """Credit limit raised by increase_percent (10% by default)"""
    limit = to_money(credit_limit)
    return to_money(limit * (HUNDRED + to_decimal(increase_percent)) / HUNDRED)
