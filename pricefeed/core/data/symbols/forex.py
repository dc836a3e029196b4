"""Currency-pair symbol formatting."""

# Quote currencies we know how to split a concatenated pair on.
QUOTE_CURRENCIES = ("USD", "ILS")
DEFAULT_QUOTE = "USD"


def format_forex_symbol(raw: str) -> str:
    """Normalise a currency-pair ticker to the hyphenated ``BASE-QUOTE`` form.

    ``EURUSD`` -> ``EUR-USD``, ``BTC`` -> ``BTC-USD``. Concatenated pairs of any
    length other than six are returned as-is; only 3+3 pairs are split.
    """
    if not raw:
        return raw
    upper = raw.upper()
    if "-" in upper:
        return upper
    if len(upper) >= 5 and any(q in upper for q in QUOTE_CURRENCIES):
        if len(upper) == 6:
            return f"{upper[:3]}-{upper[3:]}"
        return upper
    suffix = f"-{DEFAULT_QUOTE}"
    if upper.endswith(suffix):
        return upper
    return upper + suffix


def forex_candidates(symbol: str) -> list[str]:
    """Yahoo symbols worth probing for a currency pair, most specific first."""
    upper = symbol.upper()
    candidates = [upper]
    if len(upper) == 6 and upper[3:] in QUOTE_CURRENCIES:
        candidates.append(format_forex_symbol(upper))
    candidates.append(f"{upper}=X")
    return list(dict.fromkeys(candidates))
