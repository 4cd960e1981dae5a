"""MEDDPICC assessment arithmetic.

Pure functions over a pillar-id -> free-text mapping and a configuration
document (see :mod:`meddpicc.config`). Text is never interpreted: a pillar
scores on presence and length only, plus an optional keyword bonus that the
default configuration leaves disabled.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from meddpicc.config import DEFAULT_ALGORITHM, DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)

POOR = "poor"
FAIR = "fair"
GOOD = "good"
EXCELLENT = "excellent"

CONFIGURATION_UNAVAILABLE = "Scoring configuration unavailable - contact an administrator"


class MalformedConfiguration(ValueError):
    """Raised internally when a configuration cannot be used for scoring."""


def _round(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def score_text(text: str, text_scoring: dict) -> int:
    """Points (0..max_points) earned by one pillar's free text."""
    text = (text or "").strip()
    if not text:
        return 0

    points = int(text_scoring.get("base_points", 0))
    for bonus in text_scoring.get("length_bonuses", []):
        if len(text) >= int(bonus["min_length"]):
            points += int(bonus["points"])

    max_keyword_bonus = int(text_scoring.get("max_keyword_bonus", 0))
    if max_keyword_bonus > 0:
        lowered = text.lower()
        hits = sum(1 for keyword in text_scoring.get("quality_keywords", []) if keyword.lower() in lowered)
        points += min(hits, max_keyword_bonus)

    return max(0, min(points, int(text_scoring.get("max_points", 10))))


def get_qualification_level(score, thresholds: dict | None = None) -> str:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    try:
        if score >= thresholds["excellent"]:
            return EXCELLENT
        if score >= thresholds["good"]:
            return GOOD
        if score >= thresholds["fair"]:
            return FAIR
    except (KeyError, TypeError):
        logger.warning("Malformed MEDDPICC thresholds: %r", thresholds)
    return POOR


def empty_assessment(next_actions: list[str] | None = None) -> dict:
    return {
        "pillar_scores": {},
        "overall_score": 0,
        "qualification_level": POOR,
        "next_actions": list(next_actions or []),
        "stage_gate_readiness": {},
    }


def _pillars(config) -> list[dict]:
    if not isinstance(config, dict):
        raise MalformedConfiguration("configuration is not an object")
    pillars = config.get("pillars")
    if not isinstance(pillars, list) or not pillars:
        raise MalformedConfiguration("configuration has no pillars")
    for pillar in pillars:
        if not isinstance(pillar, dict) or not pillar.get("id"):
            raise MalformedConfiguration("pillar without id")
        weight = pillar.get("weight")
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight < 0:
            raise MalformedConfiguration(f"pillar {pillar['id']!r} has an invalid weight")
    return pillars


def overall_score(pillar_scores: dict[str, int], pillars: list[dict]) -> int:
    """Weighted mean of the pillar percentages, rounded half-up to an int."""
    total_weighted = Decimal("0")
    total_weight = Decimal("0")
    for pillar in pillars:
        weight = Decimal(str(pillar["weight"]))
        total_weighted += Decimal(pillar_scores.get(pillar["id"], 0)) / 100 * weight
        total_weight += weight
    if total_weight == 0:
        return 0
    return _round(total_weighted / total_weight * 100)


def build_next_actions(pillars: list[dict], pillar_scores: dict[str, int], threshold) -> list[str]:
    actions = []
    for pillar in pillars:
        score = pillar_scores.get(pillar["id"], 0)
        if score < threshold:
            name = pillar.get("display_name") or pillar["id"]
            actions.append(f"Complete {name} assessment - currently {score}% complete")
    return actions


def gate_key(from_stage: str, to_stage: str) -> str:
    return f"{from_stage}_to_{to_stage}"


def unmet_gate_criteria(gate: dict, pillar_scores: dict[str, int], min_score) -> list[str]:
    unmet = []
    for criterion in gate.get("criteria", []):
        if pillar_scores.get(criterion.get("pillar"), 0) < min_score:
            unmet.append(criterion.get("label") or criterion.get("pillar"))
    return unmet


def build_stage_gate_readiness(gates: list[dict], pillar_scores: dict[str, int], min_score) -> dict[str, bool]:
    return {
        gate_key(gate["from"], gate["to"]): not unmet_gate_criteria(gate, pillar_scores, min_score)
        for gate in gates
    }


def calculate_assessment(pillar_texts: dict[str, str], config: dict | None) -> dict:
    """Score one opportunity's pillars against ``config``.

    Never raises on a bad configuration: the result is then a zero score in
    the ``poor`` tier with a single next action pointing at the problem.
    """
    try:
        pillars = _pillars(config)
        algorithm = config.get("algorithm") or DEFAULT_ALGORITHM
        text_scoring = algorithm.get("text_scoring") or DEFAULT_ALGORITHM["text_scoring"]
        thresholds = (config.get("scoring") or {}).get("thresholds") or DEFAULT_THRESHOLDS

        pillar_scores = {
            pillar["id"]: score_text(pillar_texts.get(pillar["id"], ""), text_scoring) * 10
            for pillar in pillars
        }
        overall = overall_score(pillar_scores, pillars)
        next_actions = build_next_actions(
            pillars,
            pillar_scores,
            algorithm.get("next_action_threshold", DEFAULT_ALGORITHM["next_action_threshold"]),
        )
        readiness = build_stage_gate_readiness(
            config.get("stage_gates") or [],
            pillar_scores,
            algorithm.get("stage_gate_min_score", DEFAULT_ALGORITHM["stage_gate_min_score"]),
        )
    except (MalformedConfiguration, KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as exc:
        logger.warning("MEDDPICC configuration unusable, scoring as zero: %s", exc)
        return empty_assessment([CONFIGURATION_UNAVAILABLE])

    return {
        "pillar_scores": pillar_scores,
        "overall_score": overall,
        "qualification_level": get_qualification_level(overall, thresholds),
        "next_actions": next_actions,
        "stage_gate_readiness": readiness,
    }
