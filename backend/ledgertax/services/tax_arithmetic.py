"""
Tax Arithmetic

All amounts are Decimal. VAT is rounded to cents with ROUND_HALF_UP; on the
inclusive path the base is derived from the rounded VAT so that
base + vat reproduces the taxable amount exactly.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ledgertax.models.tax_calculation import CalculationMethod

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxAmounts:
    base_amount: Decimal
    vat_amount: Decimal


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, halves away from zero"""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_tax(
    taxable_amount: Decimal,
    rate: Decimal,
    calculation_method: CalculationMethod = CalculationMethod.INCLUSIVE,
    is_reverse_charge: bool = False,
) -> TaxAmounts:
    """Split a taxable amount into base and VAT at a percentage rate"""
    if is_reverse_charge:
        # Self-assessed by the recipient: recorded, never added to the total
        return TaxAmounts(
            base_amount=taxable_amount,
            vat_amount=round_money(taxable_amount * rate / HUNDRED),
        )

    if calculation_method == CalculationMethod.INCLUSIVE:
        vat_amount = round_money(taxable_amount * rate / (HUNDRED + rate))
        return TaxAmounts(base_amount=taxable_amount - vat_amount, vat_amount=vat_amount)

    return TaxAmounts(
        base_amount=taxable_amount,
        vat_amount=round_money(taxable_amount * rate / HUNDRED),
    )
