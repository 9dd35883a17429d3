"""Skill scoring and pruning policy."""

import math
from datetime import datetime, timedelta

from urchin.core.types import Skill

VIABLE_SCORE = 15
HISTORY_WEIGHT = 0.6
EVAL_WEIGHT = 0.4
STALE_AFTER = timedelta(days=30)


def update_score(old: float, evaluation: float) -> int:
    """Exponential smoothing favoring history, rounded half-up."""
    clamped = max(0.0, min(100.0, float(evaluation)))
    return int(math.floor(old * HISTORY_WEIGHT + clamped * EVAL_WEIGHT + 0.5))


def is_viable(skill: Skill) -> bool:
    return skill.score > VIABLE_SCORE


def should_prune(skill: Skill, now: datetime | None = None) -> bool:
    """A skill is pruned when it scores poorly after evaluation, is overused
    with a low score, or was never used a month after being learned."""
    now = now or datetime.now()
    if skill.score <= 10 and skill.eval_count >= 2:
        return True
    if skill.usage_count > 30 and skill.score <= 20:
        return True
    if now - skill.learned_at > STALE_AFTER and skill.usage_count == 0:
        return True
    return False


def apply_evaluations(
    skills: list[Skill],
    scores: dict[str, float],
    now: datetime | None = None,
) -> list[str]:
    """Update evaluated skills in place; return names that were scored."""
    now = now or datetime.now()
    evaluated = []
    for skill in skills:
        if skill.name not in scores:
            continue
        skill.score = update_score(skill.score, scores[skill.name])
        skill.eval_count += 1
        skill.last_eval_at = now
        evaluated.append(skill.name)
    return evaluated


def prune_skills(skills: list[Skill], now: datetime | None = None) -> tuple[list[Skill], list[str]]:
    """Split skills into (kept, pruned names)."""
    kept = []
    pruned = []
    for skill in skills:
        if should_prune(skill, now):
            pruned.append(skill.name)
        else:
            kept.append(skill)
    return kept, pruned
