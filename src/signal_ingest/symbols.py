"""Asset normalization helpers for channel instrument codes."""

OTC_SUFFIX = "-OTC"

# Instruments quoted by name rather than as a currency pair
COMMODITIES = frozenset({"GOLD", "SILVER", "OIL", "XAU", "XAG"})

# ISO codes accepted as halves of an unslashed six-letter pair
CURRENCY_CODES = frozenset(
    {
        "AED", "ARS", "AUD", "BHD", "BRL", "CAD", "CHF", "CNH", "CNY", "CZK",
        "DKK", "EGP", "EUR", "GBP", "HKD", "HUF", "IDR", "ILS", "INR", "JOD",
        "JPY", "KES", "KRW", "KWD", "LBP", "MAD", "MXN", "MYR", "NGN", "NOK",
        "NZD", "OMR", "PHP", "PKR", "PLN", "QAR", "RUB", "SAR", "SEK", "SGD",
        "THB", "TND", "TRY", "TWD", "UAH", "USD", "XAG", "XAU", "YER", "ZAR",
    }
)


def strip_otc(asset: str, suffix: str = OTC_SUFFIX) -> str:
    """Remove the broker OTC suffix when present."""
    normalized = asset.strip().upper()
    if normalized.endswith(suffix):
        return normalized[: -len(suffix)]
    return normalized


def normalize_asset(asset: str) -> str:
    """Convert a channel instrument code to its stored form.

    "AUDCHF-OTC" -> "AUD/CHF", "eurusd" -> "EUR/USD", "SILVER-OTC" -> "SILVER".
    """
    normalized = strip_otc(asset)
    if normalized in COMMODITIES:
        return normalized
    if len(normalized) == 6 and "/" not in normalized and normalized.isalpha():
        return f"{normalized[:3]}/{normalized[3:]}"
    return normalized


def condense_asset(asset: str) -> str:
    """Reduce an asset to bare letters for loose comparison ("EUR/USD-OTC" -> "EURUSD")."""
    return strip_otc(asset).replace("/", "")


def assets_overlap(left: str, right: str) -> bool:
    """Check whether either condensed asset contains the other."""
    a = condense_asset(left)
    b = condense_asset(right)
    if not a or not b:
        return False
    return a in b or b in a
