"""Field normalizers for the Xindus Partner API — pure functions."""

import re
from datetime import date, datetime, timezone

from booking_agent.correction_engine.keys import normalize_hsn

__all__ = ["COUNTRY_MAP", "normalize_country", "normalize_date", "normalize_hsn", "normalize_zip"]

# Country name / alias (lower-case) → ISO-3166 alpha-2
COUNTRY_MAP: dict[str, str] = {
    "united states": "US", "united states of america": "US", "usa": "US",
    "united kingdom": "GB", "great britain": "GB", "england": "GB",
    "india": "IN", "china": "CN", "japan": "JP", "germany": "DE", "france": "FR",
    "canada": "CA", "australia": "AU", "brazil": "BR", "mexico": "MX",
    "south korea": "KR", "korea": "KR", "italy": "IT", "spain": "ES",
    "netherlands": "NL", "the netherlands": "NL", "switzerland": "CH",
    "united arab emirates": "AE", "uae": "AE", "saudi arabia": "SA",
    "singapore": "SG", "malaysia": "MY", "thailand": "TH", "vietnam": "VN",
    "indonesia": "ID", "philippines": "PH", "turkey": "TR", "türkiye": "TR",
    "pakistan": "PK", "bangladesh": "BD", "sri lanka": "LK", "nepal": "NP",
    "new zealand": "NZ", "south africa": "ZA", "nigeria": "NG", "egypt": "EG",
    "israel": "IL", "russia": "RU", "poland": "PL", "sweden": "SE", "norway": "NO",
    "denmark": "DK", "finland": "FI", "belgium": "BE", "austria": "AT",
    "ireland": "IE", "portugal": "PT", "greece": "GR", "czech republic": "CZ",
    "romania": "RO", "hungary": "HU", "argentina": "AR", "chile": "CL",
    "colombia": "CO", "peru": "PE", "kenya": "KE", "ghana": "GH", "tanzania": "TZ",
    "morocco": "MA", "taiwan": "TW", "hong kong": "HK",
}

_ISO2 = re.compile(r"^[A-Za-z]{2}$")
_US_ZIP = re.compile(r"^(\d{5})(?:-\d{4})?$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_TIMESTAMP = re.compile(r"^(\d{4})-(\d{2})-(\d{2})[T ]\d{2}:\d{2}")
_DAY_FIRST = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})$")

# Tried in order once the fixed patterns above have failed.
_FALLBACK_FORMATS = (
    "%Y/%m/%d",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%Y%m%d",
)


def normalize_country(raw: str | None) -> str:
    """Country name or alias → ISO-2 code. Unknown names come back trimmed, unchanged."""
    if not raw:
        return ""
    trimmed = raw.strip()
    if _ISO2.match(trimmed):
        return trimmed.upper()
    return COUNTRY_MAP.get(trimmed.lower(), trimmed)


def normalize_zip(raw: str | None, country: str | None = None) -> str:
    """Truncate US ZIP+4 to the 5-digit form; other countries pass through trimmed."""
    if not raw:
        return ""
    trimmed = str(raw).strip()
    code = normalize_country(country)
    if code and code != "US":
        return trimmed
    match = _US_ZIP.match(trimmed)
    return match.group(1) if match else trimmed


def _midnight_utc(day: date) -> str:
    return f"{day.isoformat()}T00:00:00.000Z"


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _safe_date(year: str, month: str, day: str) -> date | None:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def _best_effort(raw: str) -> date | None:
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(raw: str | None) -> str:
    """Invoice date → ``YYYY-MM-DDT00:00:00.000Z``.

    Accepts ``YYYY-MM-DD``, ISO timestamps (their calendar date is kept) and
    day-first ``D.M.YYYY`` / ``D/M/YYYY`` / ``D-M-YYYY``. Anything else gets a
    best-effort parse and finally falls back to today.
    """
    if not raw or not str(raw).strip():
        return _midnight_utc(_today())
    value = str(raw).strip()

    for pattern in (_ISO_DATE, _ISO_TIMESTAMP):
        match = pattern.match(value)
        if match:
            parsed = _safe_date(*match.groups())
            if parsed is not None:
                return _midnight_utc(parsed)

    match = _DAY_FIRST.match(value)
    if match:
        day, month, year = match.groups()
        parsed = _safe_date(year, month, day)
        if parsed is not None:
            return _midnight_utc(parsed)

    parsed = _best_effort(value)
    return _midnight_utc(parsed if parsed is not None else _today())
