"""
Text formatting helpers shared by the exporters.
"""
import datetime as dt
import re

CURRENCY_GLYPH = "₹"
# the built-in PDF fonts have no rupee glyph
PDF_CURRENCY_GLYPH = "Rs. "

# Fixed English abbreviations so output does not depend on the process locale
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_DATE_FORMATS = ("%Y-%m-%d", "%b %d, %Y", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d")


def parse_date(value):
    """datetime/date/ISO string -> date, or None when it cannot be read."""
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = str(value).strip()
    try:
        return dt.datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_date(value) -> str:
    """`Mon D, YYYY`, or `N/A` when absent."""
    if value is None or value == "":
        return "N/A"
    d = parse_date(value)
    if d is None:
        return str(value)
    return f"{_MONTHS[d.month - 1]} {d.day}, {d.year}"


def format_number(amount) -> str:
    """Thousands separators; integral values lose their decimal part."""
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_currency(amount, glyph: str = CURRENCY_GLYPH) -> str:
    return f"{glyph}{format_number(amount)}"


def escape_csv(value) -> str:
    """RFC4180 cell: quote when the value holds a comma, quote or line break."""
    if value is None:
        return ""
    text = str(value)
    if any(ch in text for ch in ('"', ",", "\n", "\r")):
        return '"' + text.replace('"', '""') + '"'
    return text


def remove_emojis(text: str) -> str:
    """Strip emoji the built-in PDF fonts cannot draw"""
    emoji_pattern = re.compile(
        "["
        "\U0001F600-\U0001F64F"  # emoticons
        "\U0001F300-\U0001F5FF"  # symbols & pictographs
        "\U0001F680-\U0001F6FF"  # transport & map
        "\U0001F1E0-\U0001F1FF"  # flags
        "\U00002702-\U000027B0"  # dingbats
        "\U0001F900-\U0001F9FF"  # supplemental symbols
        "\U0001FA70-\U0001FAFF"  # extended pictographs
        "]+",
        flags=re.UNICODE
    )
    return emoji_pattern.sub('', text).strip()


def escape_markup(text: str) -> str:
    """Escape text for reportlab Paragraph mini-markup"""
    if not text:
        return text
    return (text
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;'))
