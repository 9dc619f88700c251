"""Currency catalogue used by pricing regions and store settings."""

from typing import NamedTuple

from core.errors import ValidationFailed


class Currency(NamedTuple):
    code: str
    name: str
    symbol: str
    locale: str


CURRENCIES: tuple[Currency, ...] = (
    # Major world currencies
    Currency("USD", "US Dollar", "$", "en-US"),
    Currency("EUR", "Euro", "€", "de-DE"),
    Currency("GBP", "British Pound", "£", "en-GB"),
    Currency("JPY", "Japanese Yen", "¥", "ja-JP"),
    Currency("CHF", "Swiss Franc", "CHF", "de-CH"),
    Currency("CAD", "Canadian Dollar", "CA$", "en-CA"),
    Currency("AUD", "Australian Dollar", "A$", "en-AU"),
    Currency("NZD", "New Zealand Dollar", "NZ$", "en-NZ"),
    # MENA
    Currency("MAD", "Moroccan Dirham", "د.م.", "fr-MA"),
    Currency("AED", "UAE Dirham", "د.إ", "ar-AE"),
    Currency("SAR", "Saudi Riyal", "﷼", "ar-SA"),
    Currency("EGP", "Egyptian Pound", "E£", "ar-EG"),
    Currency("KWD", "Kuwaiti Dinar", "د.ك", "ar-KW"),
    Currency("QAR", "Qatari Riyal", "﷼", "ar-QA"),
    Currency("BHD", "Bahraini Dinar", ".د.ب", "ar-BH"),
    Currency("OMR", "Omani Rial", "﷼", "ar-OM"),
    Currency("TND", "Tunisian Dinar", "د.ت", "ar-TN"),
    Currency("DZD", "Algerian Dinar", "د.ج", "ar-DZ"),
    # Asia
    Currency("CNY", "Chinese Yuan", "¥", "zh-CN"),
    Currency("INR", "Indian Rupee", "₹", "en-IN"),
    Currency("KRW", "South Korean Won", "₩", "ko-KR"),
    Currency("SGD", "Singapore Dollar", "S$", "en-SG"),
    Currency("HKD", "Hong Kong Dollar", "HK$", "zh-HK"),
    Currency("TWD", "Taiwan Dollar", "NT$", "zh-TW"),
    Currency("THB", "Thai Baht", "฿", "th-TH"),
    Currency("MYR", "Malaysian Ringgit", "RM", "ms-MY"),
    Currency("IDR", "Indonesian Rupiah", "Rp", "id-ID"),
    Currency("PHP", "Philippine Peso", "₱", "en-PH"),
    Currency("VND", "Vietnamese Dong", "₫", "vi-VN"),
    # Americas
    Currency("BRL", "Brazilian Real", "R$", "pt-BR"),
    Currency("MXN", "Mexican Peso", "MX$", "es-MX"),
    Currency("ARS", "Argentine Peso", "AR$", "es-AR"),
    Currency("CLP", "Chilean Peso", "CL$", "es-CL"),
    Currency("COP", "Colombian Peso", "CO$", "es-CO"),
    Currency("PEN", "Peruvian Sol", "S/", "es-PE"),
    # Europe
    Currency("SEK", "Swedish Krona", "kr", "sv-SE"),
    Currency("NOK", "Norwegian Krone", "kr", "nb-NO"),
    Currency("DKK", "Danish Krone", "kr", "da-DK"),
    Currency("PLN", "Polish Zloty", "zł", "pl-PL"),
    Currency("CZK", "Czech Koruna", "Kč", "cs-CZ"),
    Currency("HUF", "Hungarian Forint", "Ft", "hu-HU"),
    Currency("RON", "Romanian Leu", "lei", "ro-RO"),
    Currency("TRY", "Turkish Lira", "₺", "tr-TR"),
    Currency("RUB", "Russian Ruble", "₽", "ru-RU"),
    Currency("UAH", "Ukrainian Hryvnia", "₴", "uk-UA"),
    # Africa
    Currency("ZAR", "South African Rand", "R", "en-ZA"),
    Currency("NGN", "Nigerian Naira", "₦", "en-NG"),
    Currency("KES", "Kenyan Shilling", "KSh", "en-KE"),
    Currency("GHS", "Ghanaian Cedi", "₵", "en-GH"),
    # Other
    Currency("ILS", "Israeli Shekel", "₪", "he-IL"),
    Currency("PKR", "Pakistani Rupee", "₨", "ur-PK"),
    Currency("BDT", "Bangladeshi Taka", "৳", "bn-BD"),
)

_BY_CODE = {currency.code: currency for currency in CURRENCIES}


def get_currency(code: str) -> Currency | None:
    return _BY_CODE.get(code.upper())


def currency_symbol(code: str) -> str:
    """Symbol for ``code``, or the code itself when unknown."""
    currency = get_currency(code)
    return currency.symbol if currency else code


def require_currency(code: str) -> str:
    """Upper-cased ``code``; ValidationFailed unless it is in the catalogue."""
    code = code.strip().upper()
    if get_currency(code) is None:
        raise ValidationFailed(f"Unsupported currency: {code}")
    return code


def currency_locale(code: str) -> str:
    currency = get_currency(code)
    return currency.locale if currency else "en-US"
