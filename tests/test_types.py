"""Tests for core types."""

from datetime import datetime

from urchin.core.types import ActionResult, ExecutionLog, Skill


def test_action_result_payload():
    """Success exposes data, failure exposes {error}."""
    assert ActionResult(success=True, data={"a": 1}).to_payload() == {"a": 1}
    assert ActionResult(success=False, error="boom").to_payload() == {"error": "boom"}
    assert ActionResult(success=False).to_payload() == {"error": "Unknown error"}


def test_skill_defaults():
    skill = Skill(name="concise", instruction="Answer briefly")
    assert skill.score == 50
    assert skill.usage_count == 0
    assert skill.eval_count == 0
    assert skill.last_used_at is None


def test_skill_serialization_roundtrip():
    learned = datetime(2026, 1, 2, 3, 4, 5)
    skill = Skill(
        name="concise",
        instruction="Answer briefly",
        score=70,
        usage_count=3,
        last_used_at=learned,
        learned_at=learned,
    )
    data = skill.to_dict()
    assert data["learned_at"] == learned.isoformat()
    assert data["last_eval_at"] is None

    restored = Skill.from_dict(data)
    assert restored == skill


def test_skill_from_dict_ignores_unknown_fields():
    skill = Skill.from_dict({"name": "a", "instruction": "b", "legacy": True})
    assert skill.name == "a"
    assert isinstance(skill.learned_at, datetime)


def test_execution_log_duration():
    log = ExecutionLog(start_time=10.0)
    assert log.duration is None
    log.end_time = 12.5
    assert log.duration == 2.5
