"""
Funding Sources

A funding source is a tagged union: ``card`` (card number, checked for a known
brand, a brand-appropriate length and the Luhn checksum) or ``bank`` (account
number plus a mandatory 9-digit routing number). Both variants are fully
validated before anything is persisted.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from .errors import ValidationError

SEPARATORS = re.compile(r"[\s-]")
DIGITS = re.compile(r"^\d+$")
ROUTING_PATTERN = re.compile(r"^\d{9}$")
BANK_ACCOUNT_PATTERN = re.compile(r"^\d{4,17}$")

# (brand, prefix ranges, allowed lengths)
CARD_BRANDS: Tuple[Tuple[str, Tuple[Tuple[int, int], ...], Tuple[int, ...]], ...] = (
    ("Visa", ((4, 4),), (13, 16, 19)),
    ("Mastercard", ((51, 55), (2221, 2720)), (16,)),
    ("American Express", ((34, 34), (37, 37)), (15,)),
    ("Discover", ((6011, 6011), (644, 649), (65, 65)), (16, 19)),
    ("JCB", ((3528, 3589),), (16, 17, 18, 19)),
    ("Diners Club", ((300, 305), (36, 36), (38, 39)), (14, 16, 19)),
)


def luhn_valid(number: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_brand(number: str) -> Optional[Tuple[str, Tuple[int, ...]]]:
    for brand, ranges, lengths in CARD_BRANDS:
        for low, high in ranges:
            width = len(str(low))
            if len(number) >= width and low <= int(number[:width]) <= high:
                return brand, lengths
    return None


@dataclass(frozen=True)
class CardFunding:
    card_number: str
    brand: str
    type: str = "card"

    @classmethod
    def parse(cls, raw: str) -> 'CardFunding':
        normalized = SEPARATORS.sub("", raw or "")
        if not normalized or not DIGITS.match(normalized):
            raise ValidationError.for_field("fundingSource.accountNumber", "Invalid card number")

        detected = detect_brand(normalized)
        if detected is None:
            raise ValidationError.for_field("fundingSource.accountNumber", "Invalid card number")

        brand, lengths = detected
        if len(normalized) not in lengths or not luhn_valid(normalized):
            raise ValidationError.for_field(
                "fundingSource.accountNumber", f"Invalid {brand.lower()} card number"
            )
        return cls(card_number=normalized, brand=brand)


@dataclass(frozen=True)
class BankFunding:
    account_number: str
    routing_number: str
    type: str = "bank"

    @classmethod
    def parse(cls, account_number: str, routing_number: Optional[str]) -> 'BankFunding':
        errors = {}
        account = SEPARATORS.sub("", account_number or "")
        if not BANK_ACCOUNT_PATTERN.match(account):
            errors["fundingSource.accountNumber"] = ["Bank account number must be 4-17 digits"]

        routing = (routing_number or "").strip()
        if not routing:
            errors["fundingSource.routingNumber"] = ["Routing number is required"]
        elif not ROUTING_PATTERN.match(routing):
            errors["fundingSource.routingNumber"] = ["Routing number must be 9 digits"]

        if errors:
            raise ValidationError(errors)
        return cls(account_number=account, routing_number=routing)


FundingSource = Union[CardFunding, BankFunding]


def last_four(source: FundingSource) -> str:
    """Masked tail of the source's number, safe to log"""
    number = source.card_number if isinstance(source, CardFunding) else source.account_number
    return number[-4:]


def parse_funding_source(data: Mapping[str, Any]) -> FundingSource:
    """Build the funding source variant named by ``data['type']``"""
    source_type = data.get("type")
    if source_type == "card":
        return CardFunding.parse(data.get("accountNumber") or "")
    if source_type == "bank":
        return BankFunding.parse(data.get("accountNumber") or "", data.get("routingNumber"))
    raise ValidationError.for_field("fundingSource.type", "Funding source must be 'card' or 'bank'")
