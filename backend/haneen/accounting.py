from dataclasses import dataclass, fields
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from .constants import MusanedFeeType
from .errors import ValidationFailed
from .rates import RatesConfig

TWOPLACES = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value) -> Decimal:
    """Coerce a stored amount to a 2-place Decimal; missing or blank is 0."""
    if value is None or value == '':
        return ZERO
    try:
        return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


def _is_blank(value) -> bool:
    return value is None or str(value).strip() == ''


def parse_money(value, name: str) -> Decimal:
    """Read a submitted amount. Blank is 0; anything else must be a number."""
    if _is_blank(value):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationFailed(f'{name} must be a number') from exc
    if not amount.is_finite():
        raise ValidationFailed(f'{name} must be a number')
    return quantize(amount)


def parse_money_or_none(value, name: str) -> Decimal | None:
    if _is_blank(value):
        return None
    return parse_money(value, name)


def quantize(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def usd_to_sar(amount, rates: RatesConfig) -> Decimal:
    return quantize(to_money(amount) * rates.usd_to_sar)


def sar_to_usd(amount, rates: RatesConfig) -> Decimal:
    return quantize(to_money(amount) / rates.usd_to_sar)


@dataclass(frozen=True)
class ContractInputs:
    client_payment: Decimal = ZERO
    musaned_fee_type: str = MusanedFeeType.PERCENT.value
    external_commission_usd: Decimal = ZERO
    ahmed_commission: Decimal = ZERO
    wajdi_commission: Decimal = ZERO
    pool_commission: Decimal = ZERO
    sadaqa: Decimal = ZERO
    other_expenses: Decimal = ZERO
    tax_base: Decimal | None = None

    @classmethod
    def from_contract(cls, contract) -> "ContractInputs":
        return cls(
            client_payment=to_money(contract.client_payment),
            musaned_fee_type=contract.musaned_fee_type or MusanedFeeType.PERCENT.value,
            external_commission_usd=to_money(contract.external_commission_usd),
            ahmed_commission=to_money(contract.ahmed_commission),
            wajdi_commission=to_money(contract.wajdi_commission),
            pool_commission=to_money(contract.pool_commission),
            sadaqa=to_money(contract.sadaqa),
            other_expenses=to_money(contract.other_expenses),
            tax_base=None if contract.tax_base is None else to_money(contract.tax_base),
        )


@dataclass(frozen=True)
class ContractFigures:
    musaned_fee_value: Decimal
    expected_from_musaned: Decimal
    external_commission_sar: Decimal
    agency_fee: Decimal
    tax_15_percent: Decimal
    total_expenses: Decimal
    approx_profit: Decimal


def calc_musaned_fee(client_payment, fee_type: str, rates: RatesConfig) -> Decimal:
    if fee_type == MusanedFeeType.FIXED.value:
        return quantize(rates.musaned_fee_fixed)
    return quantize(to_money(client_payment) * rates.musaned_fee_percent)


def calc_tax(tax_base, rates: RatesConfig) -> Decimal:
    if tax_base is None:
        return ZERO
    return quantize(to_money(tax_base) * rates.tax_rate)


def compute_contract_figures(inputs: ContractInputs, rates: RatesConfig) -> ContractFigures:
    client_payment = to_money(inputs.client_payment)
    musaned_fee = calc_musaned_fee(client_payment, inputs.musaned_fee_type, rates)
    expected = client_payment - musaned_fee
    commission_sar = usd_to_sar(inputs.external_commission_usd, rates)
    agency_fee = quantize(rates.agency_fee)
    tax = calc_tax(inputs.tax_base, rates)

    total_expenses = (
        tax
        + commission_sar
        + to_money(inputs.ahmed_commission)
        + to_money(inputs.wajdi_commission)
        + agency_fee
        + to_money(inputs.pool_commission)
        + to_money(inputs.sadaqa)
        + to_money(inputs.other_expenses)
    )

    return ContractFigures(
        musaned_fee_value=musaned_fee,
        expected_from_musaned=expected,
        external_commission_sar=commission_sar,
        agency_fee=agency_fee,
        tax_15_percent=tax,
        total_expenses=total_expenses,
        approx_profit=expected - total_expenses,
    )


def apply_contract_figures(contract, rates: RatesConfig) -> ContractFigures:
    figures = compute_contract_figures(ContractInputs.from_contract(contract), rates)
    for field in fields(figures):
        setattr(contract, field.name, getattr(figures, field.name))
    return figures
