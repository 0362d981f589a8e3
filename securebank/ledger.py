"""
Ledger Storage Module

Accounts and their transactions. Balances and amounts are integer cents.
The ledger invariant is that an account's balance always equals the sum of
its transactions; ``credit_account`` is the only balance writer and must run
inside the same unit of work as the transaction insert it accounts for.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .storage import StorageInterface, StorageRecord, utc_now


class AccountType(Enum):
    """Deposit products a user may open, one of each"""
    CHECKING = "checking"
    SAVINGS = "savings"


class AccountStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TransactionType(Enum):
    DEPOSIT = "deposit"


class TransactionStatus(Enum):
    COMPLETED = "completed"


@dataclass
class Account(StorageRecord):
    """Bank account owned by one user"""
    user_id: int
    account_number: str
    account_type: AccountType
    balance: int  # cents
    status: AccountStatus = AccountStatus.ACTIVE

    enum_fields = {'account_type': AccountType, 'status': AccountStatus}

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


@dataclass
class Transaction(StorageRecord):
    """Immutable ledger entry"""
    account_id: int
    type: TransactionType
    amount: int  # cents, always > 0
    description: str
    status: TransactionStatus
    processed_at: Optional[datetime] = None

    datetime_fields = ('created_at', 'processed_at')
    enum_fields = {'type': TransactionType, 'status': TransactionStatus}


class LedgerStore:
    """Persistence for accounts and transactions"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.accounts_table = "accounts"
        self.transactions_table = "transactions"

    # Accounts

    def insert_account(self, user_id: int, account_number: str,
                       account_type: AccountType) -> int:
        data = {
            "user_id": user_id,
            "account_number": account_number,
            "account_type": account_type.value,
            "balance": 0,
            "status": AccountStatus.ACTIVE.value,
            "created_at": utc_now().isoformat(),
        }
        return self.storage.insert(self.accounts_table, data)

    def get_account(self, account_id: int) -> Optional[Account]:
        data = self.storage.load(self.accounts_table, account_id)
        if data:
            return Account.from_dict(data)
        return None

    def get_owned_account(self, account_id: int, user_id: int) -> Optional[Account]:
        """Load an account only if it belongs to ``user_id``"""
        account = self.get_account(account_id)
        if account is None or account.user_id != user_id:
            return None
        return account

    def find_account_by_type(self, user_id: int, account_type: AccountType) -> Optional[Account]:
        data = self.storage.find_one(
            self.accounts_table,
            {"user_id": user_id, "account_type": account_type.value},
        )
        if data:
            return Account.from_dict(data)
        return None

    def account_number_exists(self, account_number: str) -> bool:
        return self.storage.find_one(
            self.accounts_table, {"account_number": account_number}
        ) is not None

    def list_accounts(self, user_id: int) -> List[Account]:
        return [
            Account.from_dict(data)
            for data in self.storage.find(self.accounts_table, {"user_id": user_id})
        ]

    def credit_account(self, account_id: int, amount_cents: int) -> None:
        """
        Add ``amount_cents`` to the stored balance.

        The balance is re-read here rather than taken from the caller, so the
        increment always applies to the latest committed value.
        """
        with self.storage.atomic():
            data = self.storage.load(self.accounts_table, account_id)
            if data is None:
                raise KeyError(account_id)
            data["balance"] = int(data["balance"]) + amount_cents
            self.storage.save(self.accounts_table, account_id, data)

    # Transactions

    def insert_transaction(self, account_id: int, transaction_type: TransactionType,
                           amount_cents: int, description: str) -> int:
        now = utc_now()
        data = {
            "account_id": account_id,
            "type": transaction_type.value,
            "amount": amount_cents,
            "description": description,
            "status": TransactionStatus.COMPLETED.value,
            "created_at": now.isoformat(),
            "processed_at": now.isoformat(),
        }
        return self.storage.insert(self.transactions_table, data)

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        data = self.storage.load(self.transactions_table, transaction_id)
        if data:
            return Transaction.from_dict(data)
        return None

    def list_transactions(self, account_id: int) -> List[Transaction]:
        """All transactions for an account, newest first; ties go to the later insert"""
        transactions = [
            Transaction.from_dict(data)
            for data in self.storage.find(self.transactions_table, {"account_id": account_id})
        ]
        transactions.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return transactions
