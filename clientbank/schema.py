"""
Relational Schema Module

Declares the party tables (clients, accounts), their type-specific child
tables keyed by the generated party id, and the client_accounts junction.
The same declarations drive DDL for SQLite/PostgreSQL and constraint
checks in the in-memory backend.

Money columns are TEXT holding Decimal strings so no backend rounds them.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Column:
    name: str
    sql_type: str  # INTEGER or TEXT
    nullable: bool = False
    unique: bool = False


@dataclass(frozen=True)
class ForeignKey:
    column: str
    ref_table: str
    ref_column: str


@dataclass(frozen=True)
class TableSchema:
    """One table: columns, primary key, and whether the key is generated"""
    name: str
    columns: Tuple[Column, ...]
    primary_key: Tuple[str, ...]
    generated_key: bool = False
    foreign_keys: Tuple[ForeignKey, ...] = field(default_factory=tuple)
    
    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]
    
    def column(self, name: str) -> Optional[Column]:
        for c in self.columns:
            if c.name == name:
                return c
        return None


def _money(name: str) -> Column:
    return Column(name, "TEXT")


CLIENTS = TableSchema(
    name="clients",
    columns=(
        Column("customer_id", "INTEGER"),
        Column("client_type", "TEXT"),
        Column("name", "TEXT"),
        Column("address", "TEXT"),
        Column("phone_number", "TEXT"),
    ),
    primary_key=("customer_id",),
    generated_key=True,
)

PERSONAL_CLIENTS = TableSchema(
    name="personal_clients",
    columns=(
        Column("customer_id", "INTEGER"),
        Column("tax_id", "TEXT", unique=True),
        Column("credit_score", "INTEGER"),
        _money("yearly_income"),
        _money("total_debt"),
    ),
    primary_key=("customer_id",),
    foreign_keys=(ForeignKey("customer_id", "clients", "customer_id"),),
)

BUSINESS_CLIENTS = TableSchema(
    name="business_clients",
    columns=(
        Column("customer_id", "INTEGER"),
        Column("ein", "TEXT", unique=True),
        Column("business_type", "TEXT"),
        Column("contact_name", "TEXT"),
        Column("contact_title", "TEXT"),
        _money("total_asset_value"),
        _money("annual_revenue"),
        _money("annual_profit"),
    ),
    primary_key=("customer_id",),
    foreign_keys=(ForeignKey("customer_id", "clients", "customer_id"),),
)

ACCOUNTS = TableSchema(
    name="accounts",
    columns=(
        Column("account_id", "INTEGER"),
        Column("account_type", "TEXT"),
        Column("account_name", "TEXT"),
        _money("balance"),
    ),
    primary_key=("account_id",),
    generated_key=True,
)

CHECKING_ACCOUNTS = TableSchema(
    name="checking_accounts",
    columns=(
        Column("account_id", "INTEGER"),
        _money("overdraft_fee"),
        _money("overdraft_limit"),
    ),
    primary_key=("account_id",),
    foreign_keys=(ForeignKey("account_id", "accounts", "account_id"),),
)

SAVINGS_ACCOUNTS = TableSchema(
    name="savings_accounts",
    columns=(
        Column("account_id", "INTEGER"),
        Column("interest_rate", "TEXT"),
        Column("withdrawal_limit", "INTEGER"),
        Column("withdrawal_counter", "INTEGER"),
    ),
    primary_key=("account_id",),
    foreign_keys=(ForeignKey("account_id", "accounts", "account_id"),),
)

CREDIT_LINES = TableSchema(
    name="credit_lines",
    columns=(
        Column("account_id", "INTEGER"),
        _money("credit_limit"),
        Column("interest_rate", "TEXT"),
        Column("min_payment_percentage", "TEXT"),
    ),
    primary_key=("account_id",),
    foreign_keys=(ForeignKey("account_id", "accounts", "account_id"),),
)

CLIENT_ACCOUNTS = TableSchema(
    name="client_accounts",
    columns=(
        Column("customer_id", "INTEGER"),
        Column("account_id", "INTEGER"),
        Column("ownership_type", "TEXT"),
    ),
    primary_key=("customer_id", "account_id"),
    foreign_keys=(
        ForeignKey("customer_id", "clients", "customer_id"),
        ForeignKey("account_id", "accounts", "account_id"),
    ),
)

# Parents before children; create in this order, drop in reverse
TABLES: Dict[str, TableSchema] = {
    t.name: t for t in (
        CLIENTS, PERSONAL_CLIENTS, BUSINESS_CLIENTS,
        ACCOUNTS, CHECKING_ACCOUNTS, SAVINGS_ACCOUNTS, CREDIT_LINES,
        CLIENT_ACCOUNTS,
    )
}


def get_table(name: str) -> TableSchema:
    try:
        return TABLES[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name}")


def create_table_sql(table: TableSchema, dialect: str = "sqlite") -> str:
    """Render CREATE TABLE IF NOT EXISTS for sqlite or postgresql"""
    lines = []
    for column in table.columns:
        if table.generated_key and column.name == table.primary_key[0]:
            if dialect == "postgresql":
                lines.append(f"{column.name} SERIAL PRIMARY KEY")
            else:
                lines.append(f"{column.name} INTEGER PRIMARY KEY AUTOINCREMENT")
            continue
        definition = f"{column.name} {column.sql_type}"
        if not column.nullable:
            definition += " NOT NULL"
        if column.unique:
            definition += " UNIQUE"
        lines.append(definition)
    
    if not table.generated_key:
        lines.append(f"PRIMARY KEY ({', '.join(table.primary_key)})")
    
    for fk in table.foreign_keys:
        lines.append(
            f"FOREIGN KEY ({fk.column}) REFERENCES {fk.ref_table} ({fk.ref_column})"
        )
    
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {table.name} (\n    {body}\n)"


def schema_statements(dialect: str = "sqlite") -> List[str]:
    statements = [create_table_sql(t, dialect) for t in TABLES.values()]
    statements.append(
        "CREATE INDEX IF NOT EXISTS idx_client_accounts_account_id "
        "ON client_accounts(account_id)"
    )
    return statements
