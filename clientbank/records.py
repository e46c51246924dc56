"""
Persisted Records Module

Records mirror what is stored: a party row (``clients`` / ``accounts``) plus
one type-specific child row. Identifiers are held in their display formats,
phone ``(###) ###-####``, tax id ``###-##-####`` and EIN ``##-#######``;
models hold bare digits. The conversion functions at the bottom are exact
inverses of each other for every valid model.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, ClassVar, Dict, Tuple

from . import validators as v
from .errors import InvalidInput
from .money import to_money, to_decimal, HUNDRED
from .models import (
    PersonalClient, BusinessClient, CheckingAccount, SavingsAccount, CreditLine,
    ClientKind, AccountKind,
)


Row = Dict[str, Any]


def format_phone(phone: str) -> str:
    """10 digits -> (###) ###-####; anything else is returned unchanged"""
    digits = v.digits_only(phone)
    if len(digits) != 10:
        return phone
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def format_tax_id(tax_id: str) -> str:
    """9 digits -> ###-##-####"""
    digits = v.digits_only(tax_id)
    if len(digits) != 9:
        return tax_id
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


def format_ein(ein: str) -> str:
    """9 digits -> ##-#######"""
    digits = v.digits_only(ein)
    if len(digits) != 9:
        return ein
    return f"{digits[:2]}-{digits[2:]}"


def _read(row: Row, column: str, parse: Callable[[Any], Any]):
    try:
        return parse(row[column])
    except KeyError:
        raise InvalidInput(f"Stored row is missing column {column!r}")
    except (TypeError, ValueError) as e:
        # InvalidInput is a ValueError too
        raise InvalidInput(f"Stored value for {column!r} is corrupt: {row[column]!r}") from e


def _money_text(value: Decimal) -> str:
    return str(to_money(value))


@dataclass
class PersonalClientRecord:
    customer_id: int
    name: str
    address: str
    phone_number: str
    tax_id: str
    credit_score: int
    yearly_income: Decimal
    total_debt: Decimal

    kind: ClassVar[str] = ClientKind.PERSONAL.value

    def to_rows(self) -> Tuple[Row, Row]:
        """(clients row, personal_clients row), both without the key"""
        parent = {
            'client_type': self.kind,
            'name': self.name,
            'address': self.address,
            'phone_number': self.phone_number,
        }
        child = {
            'tax_id': self.tax_id,
            'credit_score': self.credit_score,
            'yearly_income': _money_text(self.yearly_income),
            'total_debt': _money_text(self.total_debt),
        }
        return parent, child

    @classmethod
    def from_row(cls, row: Row) -> 'PersonalClientRecord':
        return cls(
            customer_id=_read(row, 'customer_id', int),
            name=_read(row, 'name', str),
            address=_read(row, 'address', str),
            phone_number=_read(row, 'phone_number', str),
            tax_id=_read(row, 'tax_id', str),
            credit_score=_read(row, 'credit_score', int),
            yearly_income=_read(row, 'yearly_income', to_money),
            total_debt=_read(row, 'total_debt', to_money),
        )


@dataclass
class BusinessClientRecord:
    customer_id: int
    name: str
    address: str
    phone_number: str
    ein: str
    business_type: str
    contact_name: str
    contact_title: str
    total_asset_value: Decimal
    annual_revenue: Decimal
    annual_profit: Decimal

    kind: ClassVar[str] = ClientKind.BUSINESS.value

    def to_rows(self) -> Tuple[Row, Row]:
        """(clients row, business_clients row), both without the key"""
        parent = {
            'client_type': self.kind,
            'name': self.name,
            'address': self.address,
            'phone_number': self.phone_number,
        }
        child = {
            'ein': self.ein,
            'business_type': self.business_type,
            'contact_name': self.contact_name,
            'contact_title': self.contact_title,
            'total_asset_value': _money_text(self.total_asset_value),
            'annual_revenue': _money_text(self.annual_revenue),
            'annual_profit': _money_text(self.annual_profit),
        }
        return parent, child

    @classmethod
    def from_row(cls, row: Row) -> 'BusinessClientRecord':
        return cls(
            customer_id=_read(row, 'customer_id', int),
            name=_read(row, 'name', str),
            address=_read(row, 'address', str),
            phone_number=_read(row, 'phone_number', str),
            ein=_read(row, 'ein', str),
            business_type=_read(row, 'business_type', str),
            contact_name=_read(row, 'contact_name', str),
            contact_title=_read(row, 'contact_title', str),
            total_asset_value=_read(row, 'total_asset_value', to_money),
            annual_revenue=_read(row, 'annual_revenue', to_money),
            annual_profit=_read(row, 'annual_profit', to_money),
        )


@dataclass
class CheckingAccountRecord:
    account_id: int
    account_name: str
    balance: Decimal
    overdraft_fee: Decimal
    overdraft_limit: Decimal

    kind: ClassVar[str] = AccountKind.CHECKING.value

    def to_rows(self) -> Tuple[Row, Row]:
        parent = {
            'account_type': self.kind,
            'account_name': self.account_name,
            'balance': _money_text(self.balance),
        }
        child = {
            'overdraft_fee': _money_text(self.overdraft_fee),
            'overdraft_limit': _money_text(self.overdraft_limit),
        }
        return parent, child

    @classmethod
    def from_row(cls, row: Row) -> 'CheckingAccountRecord':
        return cls(
            account_id=_read(row, 'account_id', int),
            account_name=_read(row, 'account_name', str),
            balance=_read(row, 'balance', to_money),
            overdraft_fee=_read(row, 'overdraft_fee', to_money),
            overdraft_limit=_read(row, 'overdraft_limit', to_money),
        )


@dataclass
class SavingsAccountRecord:
    account_id: int
    account_name: str
    balance: Decimal
    interest_rate: Decimal
    withdrawal_limit: int
    withdrawal_counter: int

    kind: ClassVar[str] = AccountKind.SAVINGS.value

    def to_rows(self) -> Tuple[Row, Row]:
        parent = {
            'account_type': self.kind,
            'account_name': self.account_name,
            'balance': _money_text(self.balance),
        }
        child = {
            'interest_rate': str(self.interest_rate),
            'withdrawal_limit': self.withdrawal_limit,
            'withdrawal_counter': self.withdrawal_counter,
        }
        return parent, child

    @classmethod
    def from_row(cls, row: Row) -> 'SavingsAccountRecord':
        return cls(
            account_id=_read(row, 'account_id', int),
            account_name=_read(row, 'account_name', str),
            balance=_read(row, 'balance', to_money),
            interest_rate=_read(row, 'interest_rate', to_decimal),
            withdrawal_limit=_read(row, 'withdrawal_limit', int),
            withdrawal_counter=_read(row, 'withdrawal_counter', int),
        )


@dataclass
class CreditLineRecord:
    """Minimum payment is stored as a fraction (2.5% -> 0.025)"""
    account_id: int
    account_name: str
    balance: Decimal
    credit_limit: Decimal
    interest_rate: Decimal
    min_payment_fraction: Decimal

    kind: ClassVar[str] = AccountKind.CREDIT_LINE.value

    def to_rows(self) -> Tuple[Row, Row]:
        parent = {
            'account_type': self.kind,
            'account_name': self.account_name,
            'balance': _money_text(self.balance),
        }
        child = {
            'credit_limit': _money_text(self.credit_limit),
            'interest_rate': str(self.interest_rate),
            'min_payment_percentage': str(self.min_payment_fraction),
        }
        return parent, child

    @classmethod
    def from_row(cls, row: Row) -> 'CreditLineRecord':
        return cls(
            account_id=_read(row, 'account_id', int),
            account_name=_read(row, 'account_name', str),
            balance=_read(row, 'balance', to_money),
            credit_limit=_read(row, 'credit_limit', to_money),
            interest_rate=_read(row, 'interest_rate', to_decimal),
            min_payment_fraction=_read(row, 'min_payment_percentage', to_decimal),
        )


# Model <-> record conversion

def personal_client_to_record(client: PersonalClient) -> PersonalClientRecord:
    return PersonalClientRecord(
        customer_id=client.customer_id,
        name=client.name,
        address=client.address,
        phone_number=format_phone(client.phone_number),
        tax_id=format_tax_id(client.tax_id),
        credit_score=client.credit_score,
        yearly_income=client.yearly_income,
        total_debt=client.total_debt,
    )


def personal_client_from_record(record: PersonalClientRecord) -> PersonalClient:
    return PersonalClient(
        customer_id=record.customer_id,
        name=record.name,
        address=record.address,
        phone_number=record.phone_number,
        tax_id=record.tax_id,
        credit_score=record.credit_score,
        yearly_income=record.yearly_income,
        total_debt=record.total_debt,
    )


def business_client_to_record(client: BusinessClient) -> BusinessClientRecord:
    return BusinessClientRecord(
        customer_id=client.customer_id,
        name=client.name,
        address=client.address,
        phone_number=format_phone(client.phone_number),
        ein=format_ein(client.ein),
        business_type=client.business_type.value,
        contact_name=client.contact_name,
        contact_title=client.contact_title.value,
        total_asset_value=client.total_asset_value,
        annual_revenue=client.annual_revenue,
        annual_profit=client.annual_profit,
    )


def business_client_from_record(record: BusinessClientRecord) -> BusinessClient:
    # An unknown stored business_type or contact_title raises InvalidInput here
    return BusinessClient(
        customer_id=record.customer_id,
        name=record.name,
        address=record.address,
        phone_number=record.phone_number,
        ein=record.ein,
        business_type=record.business_type,
        contact_name=record.contact_name,
        contact_title=record.contact_title,
        total_asset_value=record.total_asset_value,
        annual_revenue=record.annual_revenue,
        annual_profit=record.annual_profit,
    )


def checking_to_record(account: CheckingAccount) -> CheckingAccountRecord:
    return CheckingAccountRecord(
        account_id=account.account_id,
        account_name=account.account_name,
        balance=account.balance,
        overdraft_fee=account.overdraft_fee,
        overdraft_limit=account.overdraft_limit,
    )


def checking_from_record(record: CheckingAccountRecord) -> CheckingAccount:
    return CheckingAccount(
        account_id=record.account_id,
        account_name=record.account_name,
        balance=record.balance,
        overdraft_fee=record.overdraft_fee,
        overdraft_limit=record.overdraft_limit,
    )


def savings_to_record(account: SavingsAccount) -> SavingsAccountRecord:
    return SavingsAccountRecord(
        account_id=account.account_id,
        account_name=account.account_name,
        balance=account.balance,
        interest_rate=account.interest_rate,
        withdrawal_limit=account.withdrawal_limit,
        withdrawal_counter=account.withdrawal_counter,
    )


def savings_from_record(record: SavingsAccountRecord) -> SavingsAccount:
    return SavingsAccount(
        account_id=record.account_id,
        account_name=record.account_name,
        balance=record.balance,
        interest_rate=record.interest_rate,
        withdrawal_limit=record.withdrawal_limit,
        withdrawal_counter=record.withdrawal_counter,
    )


def credit_line_to_record(account: CreditLine) -> CreditLineRecord:
    return CreditLineRecord(
        account_id=account.account_id,
        account_name=account.account_name,
        balance=account.balance,
        credit_limit=account.credit_limit,
        interest_rate=account.interest_rate,
        min_payment_fraction=account.min_payment_percentage / HUNDRED,
    )


def credit_line_from_record(record: CreditLineRecord) -> CreditLine:
    return CreditLine(
        account_id=record.account_id,
        account_name=record.account_name,
        balance=record.balance,
        credit_limit=record.credit_limit,
        interest_rate=record.interest_rate,
        min_payment_percentage=record.min_payment_fraction * HUNDRED,
    )
