"""Term matching between ingredient names and rule terms.

A name matches a term when either one contains the other, on the full
string or on any whitespace token. "tarwebloem" matches the term "tarwe";
very short terms can also match unrelated words.
"""

from __future__ import annotations

import re
from typing import Iterable

_TRAILING_S = re.compile(r"\s+s$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def normalize(name: str) -> set[str]:
    """Return the comparable forms of an ingredient name.

    Forms: lowercase, underscores replaced by spaces, and a naive singular
    (a detached trailing " s" removed). Blank names have no forms.
    """
    raw = name.strip().lower()
    if not raw:
        return set()
    forms = {raw}
    with_spaces = raw.replace("_", " ")
    forms.add(with_spaces)
    singular = _TRAILING_S.sub("", with_spaces)
    if singular != with_spaces:
        forms.add(singular)
    return forms


def _contains_either_way(a: str, b: str) -> bool:
    return a == b or b in a or a in b


def matches(name: str, terms: Iterable[str]) -> bool:
    """Check whether an ingredient name matches any of the given terms."""
    candidates = normalize(name)
    if not candidates:
        return False
    term_list = [t for t in terms if t]
    for form in sorted(candidates):
        tokens = [tok for tok in _WHITESPACE.split(form) if tok]
        for term in term_list:
            for term_form in (term, term.replace("_", " ")):
                if _contains_either_way(form, term_form):
                    return True
                for tok in tokens:
                    if _contains_either_way(tok, term_form):
                        return True
    return False
