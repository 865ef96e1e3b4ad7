"""Slug generation — URL-safe identifiers derived from human text."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """'Acme & Sons Ltd.' -> 'acme-sons-ltd'. Never returns an empty string."""
    ascii_text = (
        unicodedata.normalize("NFKD", text)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    slug = _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")
    return slug[:120].rstrip("-") or "item"


def candidate_slugs(base: str):
    """base, base-1, base-2, ... — caller stops at the first free one."""
    yield base
    n = 1
    while True:
        yield f"{base}-{n}"
        n += 1
