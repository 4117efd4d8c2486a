"""Answer validation for submitted solutions."""

from __future__ import annotations

import re

TRUE_ANSWERS = frozenset({"true", "참", "o", "yes", "맞다", "1"})
FALSE_ANSWERS = frozenset({"false", "거짓", "x", "no", "틀리다", "0"})


def _normalize(text: str) -> str:
    return text.strip().lower()


def check_answer(user_answer: str, correct_answer: str | None, problem_type: str) -> bool:
    """Decide whether a submitted answer is correct.

    Problems without a stored answer (open questions) are accepted.

    Args:
        user_answer: Raw answer from the learner
        correct_answer: Stored answer of the problem
        problem_type: multiple_choice | true_false | short_answer | essay

    Returns:
        True if the answer counts as correct
    """
    if not correct_answer or not correct_answer.strip():
        return True

    given = _normalize(user_answer)
    expected = _normalize(correct_answer)

    if problem_type == "true_false":
        if given in TRUE_ANSWERS:
            return expected in TRUE_ANSWERS
        if given in FALSE_ANSWERS:
            return expected in FALSE_ANSWERS
        return False

    if problem_type == "essay":
        # Any keyword of the model answer counts
        keywords = [k.strip() for k in re.split(r"[\s,;]+", expected) if k.strip()]
        return any(keyword in given for keyword in keywords)

    return given == expected
