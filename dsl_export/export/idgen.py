"""
Deterministic name-derived identifiers.

Features:
- sanitize_filename(name): filesystem-safe slug for exported DSL files
- slug(name): placeholder slug (NFKC → casefold → non-word runs to "_")
- DedupTracker: _2, _3, ... suffixes for colliding slugs
- unique_filename_base(...): per-run filename collision policy
"""
import hashlib
import re
import unicodedata
from typing import Any, Dict, Sequence, Set

# Characters rejected by common filesystems
_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE_RUN = re.compile(r"\s+")
_NON_WORD_RUN = re.compile(r"[^\w]+")
_UNDERSCORE_RUN = re.compile(r"_+")

DEFAULT_SLUG = "dataset"


def sanitize_filename(name: str) -> str:
    """
    Convert a display name into a filename-safe string.

    Steps (in order):
    1. Replace any of < > : " / \\ | ? * with "_"
    2. Collapse whitespace runs into a single "-"
    3. Lowercase

    No length limit and no uniqueness guarantee: distinct names may
    sanitize to the same string.

    Examples:
        sanitize_filename("My Test App") → "my-test-app"
        sanitize_filename('App: "Test" <Version>') → "app_-_test_-_version_"
    """
    s = _UNSAFE_FILENAME_CHARS.sub("_", name)
    s = _WHITESPACE_RUN.sub("-", s)
    return s.lower()


def slug(value: Any) -> str:
    """
    Convert a dataset name into a placeholder slug.

    Steps:
    1. NFKC Unicode normalization (full-width → half-width, etc.)
    2. Case folding
    3. Replace runs of non-word characters with underscores
    4. Collapse multiple underscores, strip leading/trailing ones

    Unicode letters are kept as-is so that non-Latin names still produce
    a readable slug. Falls back to "dataset" when nothing is left.

    Idempotent: slug(slug(x)) == slug(x)

    Examples:
        slug("Customer FAQ") → "customer_faq"
        slug("Ｐｒｏｄｕｃｔ ＃１") → "product_1"
        slug("社内規程 v2") → "社内規程_v2"
    """
    if value is None:
        return DEFAULT_SLUG

    s = unicodedata.normalize("NFKC", str(value))
    s = s.casefold()
    s = _NON_WORD_RUN.sub("_", s)
    s = _UNDERSCORE_RUN.sub("_", s)
    s = s.strip("_")

    return s or DEFAULT_SLUG


class DedupTracker:
    """
    Assigns unique names by appending _2, _3, ... to repeated bases.

    First occurrence wins (no suffix). A suffixed name never repeats a name
    that was already claimed.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self._seen: Set[str] = set()

    def claim(self, base: str) -> str:
        """Return ``base`` or the next free suffixed variant of it."""
        if base not in self._seen:
            self._seen.add(base)
            self._counts.setdefault(base, 1)
            return base

        count = self._counts.get(base, 1)
        while True:
            count += 1
            candidate = f"{base}_{count}"
            if candidate not in self._seen:
                break
        self._counts[base] = count
        self._seen.add(candidate)
        return candidate


def short_hash(value: str, length: int = 8) -> str:
    """First ``length`` hex chars of the SHA-1 of ``value``."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:length]


def unique_filename_base(
    name: str,
    app_id: str,
    taken: Set[str],
    suffixes: Sequence[str] = (".yml",),
) -> str:
    """
    Sanitize ``name`` into a file base whose files are all unused.

    ``taken`` holds the full file names already claimed in the run. A base is
    free only if ``base + suffix`` is unclaimed for every suffix, so one app's
    raw file can never land on another app's normalized file. Later apps that
    clash get "-<sha1(app_id)[:8]>" appended. The chosen base's file names are
    added to ``taken``.
    """
    def _free(candidate: str) -> bool:
        return all(f"{candidate}{suffix}" not in taken for suffix in suffixes)

    base = sanitize_filename(name)
    if not _free(base):
        base = f"{base}-{short_hash(app_id)}"
        # Only possible if two apps share an id in the listing
        suffix_number = 2
        candidate = base
        while not _free(candidate):
            candidate = f"{base}-{suffix_number}"
            suffix_number += 1
        base = candidate
    taken.update(f"{base}{suffix}" for suffix in suffixes)
    return base
