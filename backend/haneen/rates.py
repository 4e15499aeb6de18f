from dataclasses import dataclass
from decimal import Decimal

from flask import current_app


@dataclass(frozen=True)
class RatesConfig:
    """Monetary parameters passed explicitly into every computation."""

    usd_to_sar: Decimal = Decimal("3.75")
    agency_fee: Decimal = Decimal("136")
    tax_rate: Decimal = Decimal("0.15")
    musaned_fee_fixed: Decimal = Decimal("125.35")
    musaned_fee_percent: Decimal = Decimal("0.024")

    @classmethod
    def from_config(cls, config) -> "RatesConfig":
        defaults = cls()
        return cls(
            usd_to_sar=Decimal(str(config.get("USD_TO_SAR", defaults.usd_to_sar))),
            agency_fee=Decimal(str(config.get("AGENCY_FEE", defaults.agency_fee))),
            tax_rate=Decimal(str(config.get("TAX_RATE", defaults.tax_rate))),
            musaned_fee_fixed=Decimal(str(config.get("MUSANED_FEE_FIXED", defaults.musaned_fee_fixed))),
            musaned_fee_percent=Decimal(str(config.get("MUSANED_FEE_PERCENT", defaults.musaned_fee_percent))),
        )


def current_rates() -> RatesConfig:
    """Rates for the running Flask app, for use in request handlers."""
    return RatesConfig.from_config(current_app.config)
