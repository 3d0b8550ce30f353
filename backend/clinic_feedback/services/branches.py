from __future__ import annotations

from difflib import SequenceMatcher

from clinic_feedback.core.errors import BranchNotRecognized
from clinic_feedback.models.branch import Branch

DEFAULT_THRESHOLD = 0.5
MAX_SUGGESTIONS = 3


def _fold(value: str) -> str:
    return " ".join(value.casefold().split())


def similarity(left: str, right: str) -> float:
    return SequenceMatcher(None, _fold(left), _fold(right)).ratio()


def rank_branches(raw: str, candidates: list[Branch] | None = None) -> list[tuple[Branch, float]]:
    pool = candidates if candidates is not None else list(Branch)
    scored = [(branch, similarity(raw, branch.value)) for branch in pool]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored


def match_branch(
    raw: str | None,
    *,
    threshold: float = DEFAULT_THRESHOLD,
    candidates: list[Branch] | None = None,
) -> Branch:
    """Map a free-text branch label onto the closest canonical branch.

    Labels scoring below ``threshold`` are rejected with up to three suggestions;
    a low-confidence guess is never returned.
    """
    label = str(raw or "").strip()
    if not label:
        raise BranchNotRecognized(label, [])
    ranked = rank_branches(label, candidates)
    best, score = ranked[0]
    if score < threshold:
        suggestions = [branch.value for branch, value in ranked[:MAX_SUGGESTIONS] if value > 0]
        raise BranchNotRecognized(label, suggestions)
    return best


def coerce_branch(value: Branch | str | None, *, threshold: float = DEFAULT_THRESHOLD) -> Branch | None:
    if value is None or isinstance(value, Branch):
        return value
    try:
        return Branch(value)
    except ValueError:
        return match_branch(value, threshold=threshold)
