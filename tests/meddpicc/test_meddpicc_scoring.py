"""Unit tests for the MEDDPICC scoring arithmetic."""
import pytest

from meddpicc.config import get_default_config
from meddpicc.scoring import (
    CONFIGURATION_UNAVAILABLE,
    calculate_assessment,
    get_qualification_level,
    score_text,
)

PILLAR_IDS = [
    "metrics", "economicBuyer", "decisionCriteria", "decisionProcess", "paperProcess",
    "identifyPain", "implicatePain", "champion", "competition",
]
LONG_TEXT = "Quantified savings of 2.4M over three years agreed with finance"


def _texts(value=LONG_TEXT, only=None):
    return {pillar_id: value if only is None or pillar_id in only else "" for pillar_id in PILLAR_IDS}


class TestScoreText:
    def test_empty_and_blank_text_score_zero(self):
        rules = get_default_config()["algorithm"]["text_scoring"]
        assert score_text("", rules) == 0
        assert score_text("   \n\t", rules) == 0
        assert score_text(None, rules) == 0

    def test_length_bonuses(self):
        rules = get_default_config()["algorithm"]["text_scoring"]
        assert score_text("Short note", rules) == 8
        assert score_text("x" * 25, rules) == 9
        assert score_text("x" * 50, rules) == 10

    def test_keyword_bonus_is_capped_at_max_points(self):
        rules = {
            "base_points": 8,
            "length_bonuses": [],
            "quality_keywords": ["budget", "roi", "timeline"],
            "max_keyword_bonus": 3,
            "max_points": 10,
        }
        assert score_text("Budget, ROI and timeline confirmed", rules) == 10
        assert score_text("Budget confirmed", rules) == 9


class TestQualificationLevel:
    @pytest.mark.parametrize(
        "score,level",
        [(100, "excellent"), (80, "excellent"), (79, "good"), (60, "good"),
         (59, "fair"), (40, "fair"), (39, "poor"), (0, "poor")],
    )
    def test_default_thresholds(self, score, level):
        assert get_qualification_level(score) == level


class TestCalculateAssessment:
    def test_all_pillars_populated_is_excellent(self):
        result = calculate_assessment(_texts(), get_default_config())

        assert result["overall_score"] == 100
        assert result["qualification_level"] == "excellent"
        assert set(result["pillar_scores"].values()) == {100}
        assert result["next_actions"] == []
        assert all(result["stage_gate_readiness"].values())

    def test_short_text_in_every_pillar_is_still_excellent(self):
        result = calculate_assessment(_texts("Yes"), get_default_config())

        assert result["overall_score"] == 80
        assert result["qualification_level"] == "excellent"

    def test_no_pillars_populated_is_zero_and_poor(self):
        result = calculate_assessment(_texts(""), get_default_config())

        assert result["overall_score"] == 0
        assert result["qualification_level"] == "poor"
        assert len(result["next_actions"]) == 9
        assert not any(result["stage_gate_readiness"].values())

    def test_next_actions_name_incomplete_pillars(self):
        result = calculate_assessment(
            _texts(only=[p for p in PILLAR_IDS if p != "champion"]),
            get_default_config(),
        )

        assert result["next_actions"] == ["Complete Champion assessment - currently 0% complete"]

    def test_stage_gate_readiness_per_gate(self):
        result = calculate_assessment(
            _texts(only=["identifyPain", "champion", "economicBuyer"]),
            get_default_config(),
        )

        assert result["stage_gate_readiness"] == {
            "prospecting_to_engaging": True,
            "engaging_to_advancing": False,
            "advancing_to_key_decision": False,
        }

    def test_overall_score_rounds_half_up(self):
        config = get_default_config()
        config["pillars"] = [
            {"id": "metrics", "display_name": "Metrics", "weight": 1, "questions": []},
            {"id": "champion", "display_name": "Champion", "weight": 3, "questions": []},
        ]
        # 90% * 1 / 4 = 22.5
        result = calculate_assessment({"metrics": "x" * 30, "champion": ""}, config)

        assert result["pillar_scores"] == {"metrics": 90, "champion": 0}
        assert result["overall_score"] == 23

    def test_weighted_mean_uses_pillar_weights(self):
        config = get_default_config()
        # identifyPain (20) and implicatePain (20) out of 120
        result = calculate_assessment(_texts(only=["identifyPain", "implicatePain"]), config)

        assert result["overall_score"] == 33
        assert result["qualification_level"] == "poor"

    @pytest.mark.parametrize(
        "config",
        [
            None,
            "not a config",
            {},
            {"pillars": []},
            {"pillars": [{"id": "metrics", "weight": "heavy"}]},
            {"pillars": [{"display_name": "No id", "weight": 10}]},
        ],
    )
    def test_malformed_configuration_scores_zero_without_raising(self, config):
        result = calculate_assessment(_texts(), config)

        assert result["overall_score"] == 0
        assert result["qualification_level"] == "poor"
        assert result["next_actions"] == [CONFIGURATION_UNAVAILABLE]

    def test_zero_total_weight_scores_zero(self):
        config = get_default_config()
        for pillar in config["pillars"]:
            pillar["weight"] = 0

        result = calculate_assessment(_texts(), config)

        assert result["overall_score"] == 0
        assert result["qualification_level"] == "poor"
