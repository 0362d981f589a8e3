"""
Account Service Module

Account opening, funding and transaction history for authenticated users.
Every mutation runs as one storage unit of work so a funding call either
records its transaction and the matching balance increment, or neither.
"""

import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .errors import (
    DuplicateAccountType, InactiveAccount, InternalError, InvalidAmount,
    NotFound, ValidationError,
)
from .funding import FundingSource, last_four
from .ledger import (
    Account, AccountType, LedgerStore, Transaction, TransactionType,
)
from .logging_config import get_logger, log_action
from .money import DollarAmount, cents_to_dollars, dollars_to_cents

logger = get_logger("securebank.accounts")

ACCOUNT_NUMBER_DIGITS = 10


@dataclass(frozen=True)
class FundingResult:
    transaction: Transaction
    new_balance: int  # cents, read back from storage


@dataclass(frozen=True)
class TransactionView:
    """Transaction enriched with the owning account's type"""
    transaction: Transaction
    account_type: AccountType


def serialize_account(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "userId": account.user_id,
        "accountNumber": account.account_number,
        "accountType": account.account_type.value,
        "balance": cents_to_dollars(account.balance),
        "status": account.status.value,
        "createdAt": account.created_at.isoformat(),
    }


def serialize_transaction(transaction: Transaction,
                          account_type: Optional[AccountType] = None) -> Dict[str, Any]:
    result = {
        "id": transaction.id,
        "accountId": transaction.account_id,
        "type": transaction.type.value,
        "amount": cents_to_dollars(transaction.amount),
        "description": transaction.description,
        "status": transaction.status.value,
        "createdAt": transaction.created_at.isoformat(),
        "processedAt": transaction.processed_at.isoformat() if transaction.processed_at else None,
    }
    if account_type is not None:
        result["accountType"] = account_type.value
    return result


def generate_account_number() -> str:
    """Uniformly random 10-digit account number from a CSPRNG"""
    return str(secrets.randbelow(10 ** ACCOUNT_NUMBER_DIGITS)).zfill(ACCOUNT_NUMBER_DIGITS)


def parse_account_type(value: Union[str, AccountType]) -> AccountType:
    if isinstance(value, AccountType):
        return value
    try:
        return AccountType(value)
    except ValueError:
        raise ValidationError.for_field("accountType", "Account type must be 'checking' or 'savings'")


class AccountService:
    """
    Manages account lifecycle and funding for a user
    """

    def __init__(self, ledger: LedgerStore, number_generator=generate_account_number):
        self.ledger = ledger
        self.storage = ledger.storage
        self._generate_number = number_generator

    def create_account(self, user_id: int, account_type: Union[str, AccountType]) -> Account:
        """
        Open an account of ``account_type`` for ``user_id``.

        Raises:
            ValidationError: Unknown account type
            DuplicateAccountType: The user already has an account of this type
            InternalError: The new row could not be read back
        """
        account_type = parse_account_type(account_type)

        with self.storage.atomic():
            if self.ledger.find_account_by_type(user_id, account_type):
                raise DuplicateAccountType(account_type.value)

            account_number = self._generate_number()
            while self.ledger.account_number_exists(account_number):
                account_number = self._generate_number()

            account_id = self.ledger.insert_account(user_id, account_number, account_type)
            account = self.ledger.get_account(account_id)
            if account is None:
                raise InternalError("Failed to create account")

        log_action(
            logger, "info", "Account created",
            user_id=user_id, action="create_account", resource="account",
            extra={"account_id": account.id, "account_type": account_type.value},
        )
        return account

    def get_accounts(self, user_id: int) -> List[Account]:
        return self.ledger.list_accounts(user_id)

    def fund_account(self, account_id: int, user_id: int, amount: DollarAmount,
                     funding_source: FundingSource) -> FundingResult:
        """
        Deposit ``amount`` dollars from ``funding_source`` into an owned account.

        Args:
            account_id: Target account
            user_id: Caller; must own the account
            amount: Decimal dollars, rounded half-up to whole cents
            funding_source: An already validated CardFunding or BankFunding

        Returns:
            FundingResult with the new transaction and the stored balance

        Raises:
            InvalidAmount: Amount does not round to a positive number of cents
            NotFound: Account missing or owned by someone else
            InactiveAccount: Account is not active
            InternalError: Post-write read-back failed
        """
        try:
            amount_cents = dollars_to_cents(amount)
        except ValueError:
            raise InvalidAmount("Amount must be a valid number")
        if amount_cents <= 0:
            raise InvalidAmount()

        with self.storage.atomic():
            account = self.ledger.get_owned_account(account_id, user_id)
            if account is None:
                raise NotFound("Account not found")
            if not account.is_active:
                raise InactiveAccount()

            transaction_id = self.ledger.insert_transaction(
                account_id=account.id,
                transaction_type=TransactionType.DEPOSIT,
                amount_cents=amount_cents,
                description=f"Funding from {funding_source.type}",
            )
            self.ledger.credit_account(account.id, amount_cents)

            transaction = self.ledger.get_transaction(transaction_id)
            updated = self.ledger.get_account(account.id)
            if transaction is None:
                raise InternalError("Failed to record transaction")
            if updated is None:
                raise InternalError("Failed to update account balance")

        log_action(
            logger, "info", "Account funded",
            user_id=user_id, action="fund_account", resource="account",
            extra={"account_id": account.id, "amount_cents": amount_cents,
                   "source": funding_source.type,
                   "source_last_four": last_four(funding_source)},
        )
        return FundingResult(transaction=transaction, new_balance=updated.balance)

    def get_transactions(self, account_id: int, user_id: int) -> List[TransactionView]:
        """Transactions of an owned account, newest first"""
        account = self.ledger.get_owned_account(account_id, user_id)
        if account is None:
            raise NotFound("Account not found")
        return [
            TransactionView(transaction=transaction, account_type=account.account_type)
            for transaction in self.ledger.list_transactions(account.id)
        ]