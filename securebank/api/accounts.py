"""
Account management endpoints
"""

from fastapi import APIRouter, Depends, Query, status

from .dependencies import BankingSystem, get_banking_system, require_identity
from .schemas import CreateAccountRequest, FundAccountRequest
from ..accounts import serialize_account, serialize_transaction
from ..funding import parse_funding_source
from ..money import cents_to_dollars
from ..users import AuthenticatedIdentity


router = APIRouter()


@router.post("/createAccount", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    identity: AuthenticatedIdentity = Depends(require_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a checking or savings account"""
    account = system.accounts.create_account(identity.id, request.account_type)
    return {"account": serialize_account(account)}


@router.get("/getAccounts")
async def get_accounts(
    identity: AuthenticatedIdentity = Depends(require_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    accounts = system.accounts.get_accounts(identity.id)
    return {"accounts": [serialize_account(account) for account in accounts]}


@router.post("/fundAccount")
async def fund_account(
    request: FundAccountRequest,
    identity: AuthenticatedIdentity = Depends(require_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Deposit into an owned account from a card or bank account"""
    funding_source = parse_funding_source(request.funding_source.model_dump(by_alias=True))
    result = system.accounts.fund_account(
        account_id=request.account_id,
        user_id=identity.id,
        amount=request.amount,
        funding_source=funding_source,
    )
    return {
        "transaction": serialize_transaction(result.transaction),
        "newBalance": cents_to_dollars(result.new_balance),
    }


@router.get("/getTransactions")
async def get_transactions(
    account_id: int = Query(..., alias="accountId"),
    identity: AuthenticatedIdentity = Depends(require_identity),
    system: BankingSystem = Depends(get_banking_system)
):
    """Transaction history for an owned account, newest first"""
    views = system.accounts.get_transactions(account_id, identity.id)
    return {
        "transactions": [
            serialize_transaction(view.transaction, view.account_type) for view in views
        ]
    }
