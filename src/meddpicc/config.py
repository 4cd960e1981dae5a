"""Default MEDDPICC configuration and configuration validation.

A configuration is a plain JSON document so that it can be stored per
organization, versioned, exported and re-imported unchanged::

    {
        "version": "1.0",
        "framework": "MEDDPICC",
        "pillars": [{"id", "display_name", "description", "weight", "questions"}, ...],
        "scoring": {"thresholds": {"excellent", "good", "fair", "poor"}},
        "stage_gates": [{"from", "to", "criteria": [{"label", "pillar"}]}],
        "algorithm": {"text_scoring": {...}, "next_action_threshold", "stage_gate_min_score"},
    }
"""
from __future__ import annotations

import copy

QUESTION_TYPES = ("text", "scale", "multiple_choice", "yes_no")

DEFAULT_THRESHOLDS = {
    "excellent": 80,
    "good": 60,
    "fair": 40,
    "poor": 20,
}

DEFAULT_ALGORITHM = {
    "text_scoring": {
        # Points out of ``max_points`` for a pillar's free text.
        "base_points": 8,
        "length_bonuses": [
            {"min_length": 25, "points": 1},
            {"min_length": 50, "points": 1},
        ],
        "quality_keywords": [],
        "max_keyword_bonus": 0,
        "max_points": 10,
    },
    "next_action_threshold": 50,
    "stage_gate_min_score": 50,
}


def _pillar(pillar_id, display_name, description, weight, questions):
    return {
        "id": pillar_id,
        "display_name": display_name,
        "description": description,
        "weight": weight,
        "questions": [
            {"id": question_id, "text": text, "type": "text", "required": True}
            for question_id, text in questions
        ],
    }


DEFAULT_CONFIG = {
    "version": "1.0",
    "framework": "MEDDPICC",
    "pillars": [
        _pillar(
            "metrics", "Metrics", "Quantify the business impact and ROI", 15,
            [("current_cost", "What is the current cost of the problem?"),
             ("success_metrics", "How will success be measured?")],
        ),
        _pillar(
            "economicBuyer", "Economic Buyer", "Identify the person with budget authority", 20,
            [("budget_authority", "Who has the final budget authority?"),
             ("buyer_access", "Do we have access to the economic buyer?")],
        ),
        _pillar(
            "decisionCriteria", "Decision Criteria", "Understand how the solution will be evaluated", 10,
            [("key_criteria", "What are the key technical and business criteria?")],
        ),
        _pillar(
            "decisionProcess", "Decision Process", "Map the approval workflow and timeline", 15,
            [("process_steps", "What are the steps to reach a decision?"),
             ("approvers", "Who needs to approve?")],
        ),
        _pillar(
            "paperProcess", "Paper Process", "Document procurement and legal requirements", 5,
            [("procurement_steps", "What are the procurement and contracting steps?")],
        ),
        _pillar(
            "identifyPain", "Identify Pain", "Understand the customer's pain points", 20,
            [("biggest_challenge", "What is the biggest challenge they face?")],
        ),
        _pillar(
            "implicatePain", "Implicate Pain", "Quantify the consequences of inaction", 20,
            [("consequences", "What happens if the problem is not solved?")],
        ),
        _pillar(
            "champion", "Champion", "Find and develop an internal advocate", 10,
            [("champion_identity", "Who is our champion and what do they gain?")],
        ),
        _pillar(
            "competition", "Competition", "Assess the competitive landscape", 5,
            [("competitors", "Who are the competitors and how do we differentiate?")],
        ),
    ],
    "scoring": {
        "thresholds": dict(DEFAULT_THRESHOLDS),
    },
    "stage_gates": [
        {
            "from": "prospecting",
            "to": "engaging",
            "criteria": [
                {"label": "Pain identified", "pillar": "identifyPain"},
                {"label": "Champion identified", "pillar": "champion"},
                {"label": "Budget confirmed", "pillar": "economicBuyer"},
            ],
        },
        {
            "from": "engaging",
            "to": "advancing",
            "criteria": [
                {"label": "Economic buyer engaged", "pillar": "economicBuyer"},
                {"label": "Decision criteria established", "pillar": "decisionCriteria"},
                {"label": "Decision process mapped", "pillar": "decisionProcess"},
            ],
        },
        {
            "from": "advancing",
            "to": "key_decision",
            "criteria": [
                {"label": "Paper process completed", "pillar": "paperProcess"},
                {"label": "Competition neutralized", "pillar": "competition"},
                {"label": "Champion committed", "pillar": "champion"},
            ],
        },
    ],
    "algorithm": copy.deepcopy(DEFAULT_ALGORITHM),
}


def get_default_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config) -> dict:
    """Check a configuration document.

    Errors make the document unusable and block saving; warnings are
    reported but accepted.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(config, dict):
        return {"is_valid": False, "errors": ["Configuration must be an object."], "warnings": []}

    pillars = config.get("pillars")
    if not isinstance(pillars, list) or not pillars:
        errors.append("At least one pillar is required.")
        pillars = []

    seen_ids = set()
    total_weight = 0
    for index, pillar in enumerate(pillars):
        label = f"Pillar {index + 1}"
        if not isinstance(pillar, dict):
            errors.append(f"{label}: must be an object.")
            continue
        pillar_id = pillar.get("id")
        if not pillar_id:
            errors.append(f"{label}: id is required.")
        elif pillar_id in seen_ids:
            errors.append(f"{label}: duplicate id '{pillar_id}'.")
        else:
            seen_ids.add(pillar_id)
        if not pillar.get("display_name"):
            errors.append(f"{label}: display_name is required.")

        weight = pillar.get("weight")
        if not _is_number(weight) or weight < 0 or weight > 100:
            errors.append(f"{label}: weight must be a number between 0 and 100.")
        else:
            total_weight += weight

        questions = pillar.get("questions", [])
        if not isinstance(questions, list):
            errors.append(f"{label}: questions must be a list.")
            continue
        for q_index, question in enumerate(questions):
            q_label = f"{label}, question {q_index + 1}"
            if not isinstance(question, dict) or not question.get("id"):
                errors.append(f"{q_label}: id is required.")
                continue
            if not question.get("text"):
                errors.append(f"{q_label}: text is required.")
            if question.get("type") not in QUESTION_TYPES:
                errors.append(
                    f"{q_label}: type must be one of {', '.join(QUESTION_TYPES)}."
                )

    if pillars and total_weight != 100:
        warnings.append(f"Pillar weights sum to {total_weight}, not 100.")

    thresholds = (config.get("scoring") or {}).get("thresholds")
    if not isinstance(thresholds, dict):
        errors.append("scoring.thresholds is required.")
    else:
        for name in ("excellent", "good", "fair", "poor"):
            value = thresholds.get(name)
            if not _is_number(value) or value < 0 or value > 100:
                errors.append(f"Threshold '{name}' must be a number between 0 and 100.")
        values = [thresholds.get(name) for name in ("excellent", "good", "fair", "poor")]
        if all(_is_number(v) for v in values) and values != sorted(values, reverse=True):
            warnings.append("Thresholds should be ordered excellent > good > fair > poor.")

    gates = config.get("stage_gates", [])
    if not isinstance(gates, list):
        errors.append("stage_gates must be a list.")
    else:
        for gate in gates:
            if not isinstance(gate, dict) or not gate.get("from") or not gate.get("to"):
                errors.append("Each stage gate needs 'from' and 'to'.")
                continue
            for criterion in gate.get("criteria", []):
                pillar_ref = criterion.get("pillar") if isinstance(criterion, dict) else None
                if pillar_ref not in seen_ids:
                    warnings.append(
                        f"Stage gate {gate['from']} -> {gate['to']} references unknown pillar '{pillar_ref}'."
                    )

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}
