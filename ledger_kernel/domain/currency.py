"""Currency -- built-in ISO 4217 table used to seed new ledgers."""

from dataclasses import dataclass
from typing import ClassVar

from ledger_kernel.domain.commodity import CurrencyNode


@dataclass(frozen=True)
class CurrencyInfo:
    """Display and precision data for one ISO 4217 currency."""

    code: str
    scale: int
    name: str
    prefix: str = ""
    suffix: str = ""

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.scale == 0:
            return "1"
        return "0." + "0" * self.scale


class DefaultCurrencies:
    """Known currencies a fresh ledger can be created with."""

    DEFAULT_CODE: ClassVar[str] = "USD"

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$"),
        "EUR": CurrencyInfo("EUR", 2, "Euro", "€"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling", "£"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen", "¥"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc", "", " CHF"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar", "$"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar", "$"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar", "$"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona", "", " kr"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone", "", " kr"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone", "", " kr"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso", "$"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real", "R$"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee", "₹"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan", "¥"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won", "₩"),
        "ZAR": CurrencyInfo("ZAR", 2, "South African Rand", "R"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar", "", " BD"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar", "", " KD"),
    }

    @classmethod
    def is_known(cls, code: str) -> bool:
        return code.upper() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code.upper())

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

    @classmethod
    def build_node(cls, code: str) -> CurrencyNode:
        """
        Create an unstored CurrencyNode for ``code``.

        Unknown codes get scale 2 and the code as description.
        """
        info = cls.get_info(code)
        if info is None:
            return CurrencyNode(symbol=code.upper(), scale=2, description=code.upper())
        return CurrencyNode(
            symbol=info.code,
            scale=info.scale,
            description=info.name,
            prefix=info.prefix,
            suffix=info.suffix,
        )

    @classmethod
    def default_node(cls) -> CurrencyNode:
        return cls.build_node(cls.DEFAULT_CODE)
