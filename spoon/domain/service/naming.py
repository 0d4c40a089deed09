"""Username and display-name derivation for OAuth signups.

The resolver only produces a username *candidate*. Making it unique
(``jane-doe`` -> ``jane-doe-1``) is the identity store's job, using
``next_available_username`` against the names it actually holds.
"""

import re
import secrets
import string
import unicodedata
from collections.abc import Iterable

from spoon.domain.value import Username, VerifiedAssertion

DEFAULT_USERNAME_MAX_LENGTH = 30
PROVIDER_DISPLAY_NAME_MAX_LENGTH = 255

_DISALLOWED = re.compile(r"[^a-z0-9\s._-]")
_SEPARATORS = re.compile(r"[\s._-]+")
_FALLBACK_ALPHABET = string.ascii_lowercase + string.digits


def slugify(text: str, max_length: int = DEFAULT_USERNAME_MAX_LENGTH) -> str:
    """Turn free text into a username-safe slug.

    Accents are folded to ASCII, punctuation such as apostrophes is
    dropped, and whitespace, dots, underscores and hyphens collapse into a
    single hyphen. May return an empty string.
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode()
    slug = _DISALLOWED.sub("", folded.lower())
    slug = _SEPARATORS.sub("-", slug).strip("-")
    return slug[:max_length].rstrip("-")


def email_local_part(email: str) -> str:
    """Local part of an email with any ``+tag`` removed."""
    local = email.split("@", 1)[0]
    return local.split("+", 1)[0]


def _joined_name_parts(assertion: VerifiedAssertion) -> str | None:
    parts = [p for p in (assertion.given_name, assertion.family_name) if p]
    return " ".join(parts) if parts else None


def random_username() -> Username:
    """Last-resort username when nothing in the assertion slugs."""
    suffix = "".join(secrets.choice(_FALLBACK_ALPHABET) for _ in range(8))
    return Username(f"user-{suffix}")


def derive_username_candidate(
    assertion: VerifiedAssertion, max_length: int = DEFAULT_USERNAME_MAX_LENGTH
) -> Username:
    """Derive a username candidate from an assertion.

    Tries, in order: given and family name, full name, the email's local
    part. The first source that produces a non-empty slug wins.

    Args:
        assertion: Verified provider assertion
        max_length: Maximum slug length before uniqueness suffixing

    Returns:
        Username candidate, never empty
    """
    sources = (
        _joined_name_parts(assertion),
        assertion.full_name,
        email_local_part(assertion.email) if assertion.email else None,
    )
    for source in sources:
        if source is None:
            continue
        slug = slugify(source, max_length)
        if slug:
            return Username(slug)
    return random_username()


def derive_provider_display_name(assertion: VerifiedAssertion) -> str:
    """Name shown next to a linked provider in account settings.

    Full name if present, else the email. Falls back to the name parts and
    finally the subject id so the stored value is never empty. Cut to
    the width of the stored column.
    """
    name = (
        assertion.full_name
        or assertion.email
        or _joined_name_parts(assertion)
        or assertion.provider_user_id
    )
    return name[:PROVIDER_DISPLAY_NAME_MAX_LENGTH]


def next_available_username(base: str, taken: Iterable[str]) -> str:
    """Lowest free name in ``base``, ``base-1``, ``base-2``, ...

    Args:
        base: Username candidate
        taken: Usernames already in use (only those equal to ``base`` or
            shaped like ``base-<n>`` matter)

    Returns:
        First name in the sequence that is not taken
    """
    taken_names = set(taken)
    if base not in taken_names:
        return base
    n = 1
    while f"{base}-{n}" in taken_names:
        n += 1
    return f"{base}-{n}"


def randomized_username(base: str) -> str:
    """``base`` with a short random hex suffix, for contended names."""
    return f"{base}-{secrets.token_hex(3)}"
