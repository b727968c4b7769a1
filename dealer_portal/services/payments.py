from typing import List

from dealer_portal.core.enums import PaymentMethod
from dealer_portal.schemas.dealer import Dealer

ALWAYS_OFFERED = [
    PaymentMethod.CASH,
    PaymentMethod.GCASH,
    PaymentMethod.MAYA,
    PaymentMethod.CREDIT_CARD,
]


def has_credit_headroom(dealer: Dealer) -> bool:
    if dealer.credit_terms in ("", "None"):
        return False
    return dealer.outstanding_balance < dealer.credit_limit


def available_payment_methods(dealer: Dealer) -> List[PaymentMethod]:
    methods = list(ALWAYS_OFFERED)
    if has_credit_headroom(dealer):
        methods.append(PaymentMethod.CREDIT_TERMS)
    return methods
