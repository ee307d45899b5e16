"""UK postcode helpers. Signup stores the postcode split into three fixed parts (p1, p2, p3)."""
import re

from taskhub.schemas import PostcodeParts

_UK_POSTCODE_RE = re.compile(r"^[A-Z]{1,2}[0-9][A-Z0-9]? ?[0-9][A-Z]{2}$", re.IGNORECASE)


def split_uk_postcode(postcode: str | None) -> PostcodeParts:
    """
    Split "OUTWARD INWARD" into p1 (outward minus its last char), p2 (outward's last char)
    and p3 (inward verbatim). Anything other than exactly two space-separated tokens gives empty parts.

    "SW13 9WT" -> SW1 / 3 / 9WT, "M1 1AE" -> M / 1 / 1AE.
    """
    value = (postcode or "").strip()
    if not value:
        return PostcodeParts()
    parts = value.split(" ")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return PostcodeParts()
    outward, inward = parts
    return PostcodeParts(p1=outward[:-1], p2=outward[-1:], p3=inward)


def reconstruct_postcode(parts: PostcodeParts) -> str:
    if not parts.p1 and not parts.p2:
        return ""
    if not parts.p3:
        return f"{parts.p1}{parts.p2}"
    return f"{parts.p1}{parts.p2} {parts.p3}"


def is_valid_uk_postcode(postcode: str | None) -> bool:
    """Basic UK format check (A9 9AA, A99 9AA, AA9A 9AA, ...); the space is optional."""
    return bool(_UK_POSTCODE_RE.match((postcode or "").strip()))


def format_postcode(postcode: str | None) -> str:
    """Uppercase, and add the space before the inward code if it is missing."""
    clean = (postcode or "").strip().upper()
    if " " in clean:
        return clean
    if len(clean) >= 5:
        return f"{clean[:-3]} {clean[-3:]}"
    return clean
