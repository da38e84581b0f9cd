"""
Fuzzy matching for hypothesis names, topics and key questions

Matching rules (these directly drive coverage ratios):

- Hypotheses: lower-case and strip everything but letters/digits, then match
  on equality, on either name containing the other, or when both names
  belong to the same abbreviation group ("MI" ~ "Myocardial infarction").
- Phrases (topics, keywords): lower-case, treat "_" and "-" as spaces,
  collapse whitespace, then bidirectional substring containment.
- Empty strings never match anything.

Containment is loose for short names: "PE" is contained in
"Peptic ulcer disease" and "MI" in "Anemia", so such pairs count as a match.
A false match can raise hypothesis coverage or satisfy the must-not-miss
check; case authors should spell out short abbreviations they need kept
distinct.
"""

import re
from typing import Iterable, List, Optional, Set

from .taxonomies import HYPOTHESIS_ABBREVIATIONS, STOP_WORDS


def normalize_hypothesis(name: str) -> str:
    return re.sub(r'[^a-z0-9]', '', (name or '').lower())


def normalize_phrase(text: str) -> str:
    text = re.sub(r'[_\-]+', ' ', (text or '').lower())
    return re.sub(r'\s+', ' ', text).strip()


def _abbreviation_group(normalized: str) -> Optional[str]:
    for abbrev, expansions in HYPOTHESIS_ABBREVIATIONS.items():
        if normalized == abbrev:
            return abbrev
        for expansion in expansions:
            if expansion in normalized or normalized == expansion:
                return abbrev
    return None


def hypotheses_match(a: str, b: str) -> bool:
    """True when two hypothesis names refer to the same diagnosis"""
    na, nb = normalize_hypothesis(a), normalize_hypothesis(b)
    if not na or not nb:
        return False
    if na == nb or na in nb or nb in na:
        return True
    group_a = _abbreviation_group(na)
    return group_a is not None and group_a == _abbreviation_group(nb)


def matches_any(name: str, candidates: Iterable[str]) -> bool:
    return any(hypotheses_match(name, c) for c in candidates)


def hypothesis_sets_overlap(a: Iterable[str], b: Iterable[str]) -> bool:
    b = list(b)
    return any(matches_any(x, b) for x in a)


def phrase_match(a: str, b: str) -> bool:
    """Bidirectional case-insensitive containment"""
    na, nb = normalize_phrase(a), normalize_phrase(b)
    if not na or not nb:
        return False
    return na in nb or nb in na


def contains_phrase(text: str, phrase: str) -> bool:
    """One-directional: does text mention phrase"""
    nt, np_ = normalize_phrase(text), normalize_phrase(phrase)
    return bool(nt) and bool(np_) and np_ in nt


def content_words(text: str) -> Set[str]:
    words = re.findall(r'[a-z0-9]+', (text or '').lower())
    return {w for w in words if w not in STOP_WORDS and len(w) > 1}


def question_overlaps(key_question: str, asked: str, threshold: float = 0.5) -> bool:
    """
    True when the asked question shares at least `threshold` of the
    key question's content words.
    """
    key_words = content_words(key_question)
    if not key_words:
        return False
    shared = key_words & content_words(asked)
    return len(shared) / len(key_words) >= threshold


def dedupe(names: Iterable[str]) -> List[str]:
    """Keep first occurrence of each hypothesis (fuzzy), preserving order"""
    kept: List[str] = []
    for name in names:
        if name and not matches_any(name, kept):
            kept.append(name)
    return kept
