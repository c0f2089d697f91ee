# studio_bookings/utils/strings.py
import unicodedata

# Norwegian alphabet ends ... x y z æ ø å. '{' sorts directly after 'z'.
_NORDIC_TAIL = {
    "æ": "{0",
    "ä": "{0",
    "ø": "{1",
    "ö": "{1",
    "å": "{2",
}


def collation_key(value: str | None) -> tuple[str, str]:
    """
    Sort key approximating Norwegian collation.

    Case-insensitive, æ/ø/å after z, other accented letters folded onto
    their base letter. The original string breaks ties deterministically.
    """
    value = value or ""
    folded = []
    for char in value.casefold():
        if char in _NORDIC_TAIL:
            folded.append(_NORDIC_TAIL[char])
        else:
            folded.append(unicodedata.normalize("NFD", char)[0])
    return "".join(folded), value


def matches_query(query: str, *fields: str | None) -> bool:
    """Case-insensitive substring match of an already trimmed query."""
    needle = query.casefold()
    return any(needle in (field or "").casefold() for field in fields)
