from __future__ import annotations

import re
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein


_ABBREVIATIONS = {
    # Street types
    "st": "street",
    "ave": "avenue",
    "blvd": "boulevard",
    "dr": "drive",
    "rd": "road",
    "ln": "lane",
    "ct": "court",
    "pl": "place",
    "cir": "circle",
    "pkwy": "parkway",
    "hwy": "highway",
    "trl": "trail",
    "ter": "terrace",
    # Compass directions
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "ne": "northeast",
    "nw": "northwest",
    "se": "southeast",
    "sw": "southwest",
    # US states; codes that double as common words (in, or, me, hi, oh, ok, id,
    # al, co, de, la, md, mi, mo, mt, ne, ct, fl) are left alone
    "ak": "alaska",
    "az": "arizona",
    "ar": "arkansas",
    "ca": "california",
    "ga": "georgia",
    "il": "illinois",
    "ia": "iowa",
    "ks": "kansas",
    "ky": "kentucky",
    "ma": "massachusetts",
    "mn": "minnesota",
    "ms": "mississippi",
    "nv": "nevada",
    "nh": "new hampshire",
    "nj": "new jersey",
    "nm": "new mexico",
    "ny": "new york",
    "nc": "north carolina",
    "nd": "north dakota",
    "pa": "pennsylvania",
    "ri": "rhode island",
    "sc": "south carolina",
    "sd": "south dakota",
    "tn": "tennessee",
    "tx": "texas",
    "ut": "utah",
    "vt": "vermont",
    "va": "virginia",
    "wa": "washington",
    "wv": "west virginia",
    "wi": "wisconsin",
    "wy": "wyoming",
    "dc": "district of columbia",
    # Infrastructure
    "brg": "bridge",
    "br": "bridge",
    "bdg": "bridge",
    "tpk": "turnpike",
    "tpke": "turnpike",
    "tunl": "tunnel",
    "tnl": "tunnel",
    "fwy": "freeway",
    "expy": "expressway",
    "expwy": "expressway",
    # Unit types
    "apt": "apartment",
    "ste": "suite",
    "bldg": "building",
    "fl": "floor",
}

_CITY_ABBREVIATIONS = {
    "nyc": "new york",
    "philly": "philadelphia",
    "sf": "san francisco",
    "la": "los angeles",
    "gw": "george washington",
    "gwb": "george washington bridge",
    "lga": "laguardia",
    "jfk": "john f kennedy",
    "bqe": "brooklyn queens expressway",
    "lic": "long island city",
}

_STOP_WORDS = frozenset(
    {"in", "at", "to", "on", "the", "of", "and", "or", "near", "by", "from", "for"}
)

_POSTCODE_RE = re.compile(r"\b\d{5}(?:-\d{4})?\b")
_COUNTRY_RE = re.compile(r"\b(?:usa|us|united states of america|united states)\b")
_PUNCTUATION_RE = re.compile(r"[,.\-#]")
_CITY_RE = re.compile(
    r"\b(" + "|".join(re.escape(key) for key in _CITY_ABBREVIATIONS) + r")\b"
)

TOKEN_MATCH_THRESHOLD = 0.3
OVERALL_MATCH_THRESHOLD = 0.5
MIN_TOKEN_LENGTH = 2


@dataclass(slots=True)
class TokenMismatch:
    original: str
    best_match: str
    distance: float


@dataclass(slots=True)
class TextMismatch:
    has_mismatch: bool
    reason: str | None = None
    mismatched_tokens: list[TokenMismatch] = field(default_factory=list)


def normalize_for_comparison(text: str) -> str:
    """Lowercase, drop postcodes and country names, expand abbreviations."""

    normalized = text.lower()
    normalized = _POSTCODE_RE.sub("", normalized)
    normalized = _COUNTRY_RE.sub("", normalized)
    normalized = _PUNCTUATION_RE.sub(" ", normalized)
    normalized = _CITY_RE.sub(lambda match: _CITY_ABBREVIATIONS[match.group(1)], normalized)

    words = (_ABBREVIATIONS.get(word, word) for word in normalized.split())
    return " ".join(word for word in words if word not in _STOP_WORDS)


def comparison_tokens(text: str) -> list[str]:
    return [
        token
        for token in normalize_for_comparison(text).split()
        if len(token) >= MIN_TOKEN_LENGTH
    ]


def missing_tokens(original: str, candidate: str) -> list[str]:
    """Tokens of ``original`` that do not appear verbatim in ``candidate``."""

    available = set(comparison_tokens(candidate))
    missing = [token for token in comparison_tokens(original) if token not in available]
    return list(dict.fromkeys(missing))


def check_text_mismatch(original: str | None, candidate: str | None) -> TextMismatch:
    """
    Compare what the user said with the address a provider resolved it to.

    Each original token is paired with its closest candidate token by edit distance;
    a pair matches when the distance, normalized by the longer token, is below
    ``TOKEN_MATCH_THRESHOLD``. Fewer than half the original tokens matching flags a
    mismatch.
    """

    if not original or not candidate:
        return TextMismatch(False)

    original_tokens = comparison_tokens(original)
    candidate_tokens = comparison_tokens(candidate)
    if not original_tokens:
        return TextMismatch(False)

    mismatched: list[TokenMismatch] = []
    matched = 0
    for token in original_tokens:
        best_match = ""
        best_distance = len(token)
        for other in candidate_tokens:
            distance = Levenshtein.distance(token, other)
            if distance < best_distance or not best_match:
                best_distance = distance
                best_match = other

        longest = max(len(token), len(best_match))
        normalized = best_distance / longest if longest else 0.0
        if normalized < TOKEN_MATCH_THRESHOLD:
            matched += 1
        else:
            mismatched.append(TokenMismatch(token, best_match, normalized))

    if matched / len(original_tokens) >= OVERALL_MATCH_THRESHOLD:
        return TextMismatch(False)

    described = ", ".join(
        f'"{item.original}" -> "{item.best_match}"' for item in mismatched
    )
    return TextMismatch(
        True,
        reason=f"Address text may not match what you said: {described}",
        mismatched_tokens=mismatched,
    )
