"""
Domain Models Module

Clients (personal or business) and accounts (checking, savings, credit line)
as in-memory objects. Identity is assigned by storage at create time; until
then ``customer_id`` / ``account_id`` hold the sentinel 0.

Ownership is not embedded here: which clients own which accounts lives in
the ownership registry.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import ClassVar, List
from enum import Enum

from . import money_rules
from . import validators as v
from .errors import InvalidInput
from .money import to_money, to_decimal, HUNDRED


class ClientKind(Enum):
    """Client variants"""
    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"


class AccountKind(Enum):
    """Account variants"""
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_LINE = "CREDIT_LINE"


class OwnershipType(Enum):
    """Ownership tag on a client-account link (advisory metadata)"""
    PRIMARY = "PRIMARY"
    JOINT = "JOINT"


class BusinessType(Enum):
    """Legal form of a business client"""
    LLC = "LLC"
    CORPORATION = "Corporation"
    PARTNERSHIP = "Partnership"
    SOLE_PROPRIETORSHIP = "Sole Proprietorship"
    NON_PROFIT = "Non-Profit"


class ContactTitle(Enum):
    """Title of a business client's contact person"""
    CEO = "CEO"
    CFO = "CFO"
    MANAGER = "Manager"
    DIRECTOR = "Director"
    OWNER = "Owner"
    PARTNER = "Partner"


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInput(f"Invalid {field_name} {value!r}; expected one of: {allowed}")


def _normalize_digits(value, is_valid) -> str:
    # Only strip separators from well-formed input so bad values still fail validation
    if isinstance(value, str) and is_valid(value):
        return v.digits_only(value)
    return value


@dataclass(eq=False)
class Client:
    """
    Common client attributes. Phone numbers are held as bare digits and
    formatted for display or storage on the way out.
    """
    name: str
    address: str
    phone_number: str
    
    kind: ClassVar[ClientKind]
    
    def _normalize(self) -> None:
        self.phone_number = _normalize_digits(self.phone_number, v.is_valid_phone)
    
    def _common_errors(self) -> List[str]:
        errors = []
        if not v.is_valid_id(self.customer_id):
            errors.append("Customer ID must be a non-negative integer")
        if not v.is_valid_address(self.address):
            errors.append("Address must be at most 200 letters, digits or ,.'-# characters")
        if not v.is_valid_phone(self.phone_number):
            errors.append("Phone number must contain exactly 10 digits")
        return errors
    
    def validation_errors(self) -> List[str]:
        raise NotImplementedError
    
    def is_valid(self) -> bool:
        return not self.validation_errors()
    
    def validate(self) -> None:
        """Raise InvalidInput listing every failed check"""
        errors = self.validation_errors()
        if errors:
            raise InvalidInput(f"Invalid {self.kind.value.lower()} client: " + "; ".join(errors))
    
    @property
    def natural_key(self) -> str:
        raise NotImplementedError
    
    @property
    def formatted_phone(self) -> str:
        digits = v.digits_only(self.phone_number)
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    
    def __eq__(self, other) -> bool:
        if not isinstance(other, Client) or other.kind != self.kind:
            return NotImplemented
        if self.customer_id and other.customer_id:
            return self.customer_id == other.customer_id
        return self.natural_key == other.natural_key

    def __hash__(self) -> int:
        # A saved client equals an unsaved one with the same natural key,
        # so the hash cannot depend on customer_id
        return hash((self.kind, self.natural_key))


@dataclass(eq=False)
class PersonalClient(Client):
    """An individual client identified by tax id (SSN/ITIN)"""
    tax_id: str
    credit_score: int
    yearly_income: Decimal
    total_debt: Decimal = Decimal('0.00')
    customer_id: int = 0
    
    kind: ClassVar[ClientKind] = ClientKind.PERSONAL
    
    def __post_init__(self):
        self._normalize()
        self.tax_id = _normalize_digits(self.tax_id, v.is_valid_tax_id)
        self.yearly_income = to_money(self.yearly_income)
        self.total_debt = to_money(self.total_debt)
        self.validate()
    
    def validation_errors(self) -> List[str]:
        errors = self._common_errors()
        if not v.is_valid_person_name(self.name):
            errors.append("Name must be 3-50 letters, spaces or .'- characters")
        if not v.is_valid_tax_id(self.tax_id):
            errors.append("Tax ID must contain exactly 9 digits")
        if not v.is_valid_credit_score(self.credit_score):
            errors.append("Credit score must be between 300 and 850")
        if not v.is_non_negative(self.yearly_income):
            errors.append("Yearly income cannot be negative")
        if not v.is_non_negative(self.total_debt):
            errors.append("Total debt cannot be negative")
        return errors
    
    @property
    def natural_key(self) -> str:
        return v.digits_only(self.tax_id)
    
    @property
    def masked_tax_id(self) -> str:
        """Tax id for display, e.g. ***-**-6789"""
        return f"***-**-{v.digits_only(self.tax_id)[-4:]}"


@dataclass(eq=False)
class BusinessClient(Client):
    """A business client identified by EIN"""
    ein: str
    business_type: BusinessType
    contact_name: str
    contact_title: ContactTitle
    total_asset_value: Decimal = Decimal('0.00')
    annual_revenue: Decimal = Decimal('0.00')
    annual_profit: Decimal = Decimal('0.00')
    customer_id: int = 0
    
    kind: ClassVar[ClientKind] = ClientKind.BUSINESS
    
    def __post_init__(self):
        self._normalize()
        self.ein = _normalize_digits(self.ein, v.is_valid_ein)
        self.business_type = _coerce_enum(BusinessType, self.business_type, "business type")
        self.contact_title = _coerce_enum(ContactTitle, self.contact_title, "contact title")
        self.total_asset_value = to_money(self.total_asset_value)
        self.annual_revenue = to_money(self.annual_revenue)
        self.annual_profit = to_money(self.annual_profit)
        self.validate()
    
    def validation_errors(self) -> List[str]:
        errors = self._common_errors()
        if not v.is_valid_business_name(self.name):
            errors.append("Business name must be 2-100 letters, digits or .,'&- characters")
        if not v.is_valid_ein(self.ein):
            errors.append("EIN must contain exactly 9 digits")
        if not isinstance(self.business_type, BusinessType):
            errors.append("Business type is not recognised")
        if not v.is_valid_contact_name(self.contact_name):
            errors.append("Contact name must be between 3 and 50 characters")
        if not isinstance(self.contact_title, ContactTitle):
            errors.append("Contact title is not recognised")
        if not v.is_non_negative(self.total_asset_value):
            errors.append("Total asset value cannot be negative")
        if not v.is_non_negative(self.annual_revenue):
            errors.append("Annual revenue cannot be negative")
        # annual_profit may be negative (a loss)
        return errors
    
    @property
    def natural_key(self) -> str:
        return v.digits_only(self.ein)
    
    @property
    def formatted_ein(self) -> str:
        digits = v.digits_only(self.ein)
        return f"{digits[:2]}-{digits[2:]}"
    
    @property
    def profit_margin(self) -> Decimal:
        """Annual profit as a percentage of revenue (0 when there is no revenue)"""
        if self.annual_revenue == 0:
            return Decimal('0.00')
        return to_money(self.annual_profit / self.annual_revenue * HUNDRED)
    
    @property
    def return_on_assets(self) -> Decimal:
        """Annual profit as a percentage of total assets (0 when there are no assets)"""
        if self.total_asset_value == 0:
            return Decimal('0.00')
        return to_money(self.annual_profit / self.total_asset_value * HUNDRED)


@dataclass
class Account:
    """
    Common account attributes. Balances are signed and held to two decimals.
    Money operations only change the object when the underlying rule succeeds.
    """
    account_name: str
    balance: Decimal
    
    kind: ClassVar[AccountKind]
    
    def _common_errors(self) -> List[str]:
        errors = []
        if not v.is_valid_id(self.account_id):
            errors.append("Account ID must be a non-negative integer")
        if not v.is_valid_account_name(self.account_name):
            errors.append("Account name must be between 3 and 30 characters")
        return errors
    
    def validation_errors(self) -> List[str]:
        raise NotImplementedError
    
    def is_valid(self) -> bool:
        return not self.validation_errors()
    
    def validate(self) -> None:
        """Raise InvalidInput listing every failed check"""
        errors = self.validation_errors()
        if errors:
            raise InvalidInput(f"Invalid {self.kind.value.lower()} account: " + "; ".join(errors))


@dataclass
class CheckingAccount(Account):
    """Checking account with an overdraft allowance and a per-withdrawal overdraft fee"""
    overdraft_fee: Decimal = Decimal('0.00')
    overdraft_limit: Decimal = Decimal('0.00')
    account_id: int = 0
    
    kind: ClassVar[AccountKind] = AccountKind.CHECKING
    
    def __post_init__(self):
        self.balance = to_money(self.balance)
        self.overdraft_fee = to_money(self.overdraft_fee)
        self.overdraft_limit = to_money(self.overdraft_limit)
        self.validate()
    
    def validation_errors(self) -> List[str]:
        errors = self._common_errors()
        if not v.is_non_negative(self.overdraft_fee):
            errors.append("Overdraft fee cannot be negative")
        if not v.is_non_negative(self.overdraft_limit):
            errors.append("Overdraft limit cannot be negative")
        elif to_decimal(self.balance) < -(to_decimal(self.overdraft_limit) + to_decimal(self.overdraft_fee)):
            errors.append("Balance is below the overdraft limit")
        return errors
    
    def deposit(self, amount) -> Decimal:
        self.balance = money_rules.deposit(self.balance, amount)
        return self.balance
    
    def withdraw(self, amount) -> Decimal:
        self.balance = money_rules.checking_withdraw(
            self.balance, amount, self.overdraft_limit, self.overdraft_fee
        )
        return self.balance


@dataclass
class SavingsAccount(Account):
    """Interest-bearing savings account with a capped number of withdrawals per period"""
    interest_rate: Decimal = Decimal('0')
    withdrawal_limit: int = 6
    withdrawal_counter: int = 0
    account_id: int = 0
    
    kind: ClassVar[AccountKind] = AccountKind.SAVINGS
    
    def __post_init__(self):
        self.balance = to_money(self.balance)
        self.interest_rate = to_decimal(self.interest_rate)
        self.validate()
    
    def validation_errors(self) -> List[str]:
        errors = self._common_errors()
        if not v.is_non_negative(self.balance):
            errors.append("Savings balance cannot be negative")
        if not v.is_valid_percentage(self.interest_rate):
            errors.append("Interest rate must be between 0 and 100")
        if not v.is_valid_count(self.withdrawal_limit):
            errors.append("Withdrawal limit must be a non-negative integer")
        if not v.is_valid_count(self.withdrawal_counter):
            errors.append("Withdrawal counter must be a non-negative integer")
        return errors
    
    def deposit(self, amount) -> Decimal:
        self.balance = money_rules.deposit(self.balance, amount)
        return self.balance
    
    def withdraw(self, amount) -> Decimal:
        self.balance, self.withdrawal_counter = money_rules.savings_withdraw(
            self.balance, amount, self.withdrawal_counter, self.withdrawal_limit
        )
        return self.balance
    
    def apply_interest(self) -> Decimal:
        self.balance = money_rules.apply_interest(self.balance, self.interest_rate)
        return self.balance
    
    def reset_withdrawal_counter(self) -> None:
        self.withdrawal_counter = 0


@dataclass
class CreditLine(Account):
    """
    Revolving credit line. The balance is <= 0 and represents the amount
    owed; -credit_limit is the floor.
    """
    credit_limit: Decimal = Decimal('0.00')
    interest_rate: Decimal = Decimal('0')
    min_payment_percentage: Decimal = Decimal('0')
    account_id: int = 0
    
    kind: ClassVar[AccountKind] = AccountKind.CREDIT_LINE
    
    def __post_init__(self):
        self.balance = to_money(self.balance)
        self.credit_limit = to_money(self.credit_limit)
        self.interest_rate = to_decimal(self.interest_rate)
        self.min_payment_percentage = to_decimal(self.min_payment_percentage)
        self.validate()
    
    def validation_errors(self) -> List[str]:
        errors = self._common_errors()
        if not v.is_non_negative(self.credit_limit):
            errors.append("Credit limit cannot be negative")
        elif not -to_decimal(self.credit_limit) <= to_decimal(self.balance) <= 0:
            errors.append("Credit line balance must be between -credit_limit and 0")
        if not v.is_valid_percentage(self.interest_rate):
            errors.append("Interest rate must be between 0 and 100")
        if not v.is_valid_percentage(self.min_payment_percentage):
            errors.append("Minimum payment percentage must be between 0 and 100")
        return errors
    
    @property
    def available_credit(self) -> Decimal:
        return to_money(self.credit_limit + self.balance)
    
    def charge(self, amount) -> Decimal:
        self.balance = money_rules.charge_credit(self.balance, amount, self.credit_limit)
        return self.balance
    
    def make_payment(self, amount) -> Decimal:
        self.balance = money_rules.make_payment(self.balance, amount, self.credit_limit)
        return self.balance
    
    def minimum_payment(self) -> Decimal:
        return money_rules.minimum_payment(self.balance, self.min_payment_percentage)
    
    def increase_credit_limit(self, increase_percent=10) -> Decimal:
        self.credit_limit = money_rules.increased_credit_limit(self.credit_limit, increase_percent)
        return self.credit_limit
