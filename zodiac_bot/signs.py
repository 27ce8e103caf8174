"""The twelve signs and the single place raw text becomes a Sign."""

import enum

from zodiac_bot._errors import InvalidSign


class Sign(enum.Enum):
    ARIES       = "Aries"
    TAURUS      = "Taurus"
    GEMINI      = "Gemini"
    CANCER      = "Cancer"
    LEO         = "Leo"
    VIRGO       = "Virgo"
    LIBRA       = "Libra"
    SCORPIO     = "Scorpio"
    SAGITTARIUS = "Sagittarius"
    CAPRICORN   = "Capricorn"
    AQUARIUS    = "Aquarius"
    PISCES      = "Pisces"

    def __str__(self) -> str:
        return self.value


_BY_FOLDED: dict[str, Sign] = {s.value.casefold(): s for s in Sign}


def normalize(raw: str) -> Sign:
    """Return the canonical Sign for *raw*, or raise InvalidSign.

    Surrounding whitespace is trimmed and case is folded; anything else must
    match a sign name exactly.
    """
    sign = _BY_FOLDED.get(raw.strip().casefold())
    if sign is None:
        raise InvalidSign(raw)
    return sign
