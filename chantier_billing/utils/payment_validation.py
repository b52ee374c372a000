"""Input validation for billing operations.

Runs before the generator and the allocator, which assume well-formed input.
"""
from typing import Iterable, Optional

from chantier_billing.models.invoice import InvoiceItem


class PaymentValidationError(Exception):
    """Custom exception for billing input validation errors."""
    pass


def validate_contract_terms(total_amount: int, deposit_amount: int, months: int) -> None:
    """
    Validate the inputs of a schedule.

    Rules:
    - total_amount must be positive
    - deposit_amount must be non-negative and below the total
    - months must be at least 1
    """
    if total_amount <= 0:
        raise PaymentValidationError(
            f"Total amount must be positive: {total_amount}"
        )

    if deposit_amount < 0:
        raise PaymentValidationError(
            f"Deposit amount cannot be negative: {deposit_amount}"
        )

    if deposit_amount >= total_amount:
        raise PaymentValidationError(
            f"Deposit ({deposit_amount}) must be lower than the total ({total_amount})"
        )

    if months <= 0:
        raise PaymentValidationError(
            f"Term must be at least one month: {months}"
        )

    # The last installment absorbs the rounding and must stay positive
    remaining = total_amount - deposit_amount
    monthly = -(-remaining // months)
    if remaining - monthly * (months - 1) <= 0:
        raise PaymentValidationError(
            f"Remaining balance ({remaining}) cannot be spread over {months} months"
        )


def validate_payment_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise PaymentValidationError(f"Payment amount must be an integer: {amount!r}")
    if amount <= 0:
        raise PaymentValidationError(f"Payment amount must be positive: {amount}")


def validate_payment_method(method: Optional[str]) -> None:
    if not method or not method.strip():
        raise PaymentValidationError("Payment method is required")


def validate_invoice_items(items: Iterable[InvoiceItem], total_amount: int) -> None:
    """
    Validate invoice line items.

    Rules:
    - quantity must be positive and unit_price non-negative
    - total_price must equal quantity * unit_price
    - When items are given, they must add up to the invoice total
    """
    items = list(items)
    for item in items:
        if item.quantity <= 0:
            raise PaymentValidationError(
                f"Item '{item.description}' has non-positive quantity: {item.quantity}"
            )
        if item.unit_price < 0:
            raise PaymentValidationError(
                f"Item '{item.description}' has negative price: {item.unit_price}"
            )
        if item.total_price != item.quantity * item.unit_price:
            raise PaymentValidationError(
                f"Item '{item.description}': total ({item.total_price}) does not equal "
                f"quantity x unit price ({item.quantity * item.unit_price})"
            )

    if items:
        items_total = sum(item.total_price for item in items)
        if items_total != total_amount:
            raise PaymentValidationError(
                f"Items total ({items_total}) does not equal invoice total ({total_amount})"
            )
