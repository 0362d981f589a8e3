"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    """Every field is optional here so missing ones are reported with the rest"""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    date_of_birth: Optional[str] = Field(None, alias="dateOfBirth")
    ssn: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, alias="zipCode")


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_type: str = Field(..., alias="accountType", description="checking or savings")


class FundingSourceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="card or bank")
    account_number: str = Field(..., alias="accountNumber")
    routing_number: Optional[str] = Field(None, alias="routingNumber")


class FundAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(..., alias="accountId")
    amount: Decimal = Field(..., description="Dollars, rounded half-up to cents")
    funding_source: FundingSourceModel = Field(..., alias="fundingSource")
