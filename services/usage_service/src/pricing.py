"""Canonical pricing: one base plan with monthly tokens plus rollover top-up packages."""

from dataclasses import dataclass
from typing import Dict

CURRENCY = "CAD"
BASE_PRICE = 34.99
TOKENS_INCLUDED = 1200
# base tokens expire at the end of the cycle, purchased ones roll over
MAX_ROLLOVER_MONTHS = 12


@dataclass(frozen=True)
class TokenPackage:
    name: str
    tokens: int
    price: float


TOKEN_PACKAGES: Dict[str, TokenPackage] = {
    "small": TokenPackage("small", 300, 15.00),
    "medium": TokenPackage("medium", 600, 27.00),
    "large": TokenPackage("large", 1000, 40.00),
}
