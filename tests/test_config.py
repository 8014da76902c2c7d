import json
from pathlib import Path

import pytest

from vimmentor.config import (
    BLOCKED_KEY_CATEGORIES,
    EXCLUDED_FILETYPES,
    MentorConfig,
    config_from_dict,
    load_config,
)
from vimmentor.models import EscalationAction, TeachingMode


def test_defaults() -> None:
    config = MentorConfig()
    assert config.teaching_mode is TeachingMode.MODERATE
    assert config.learning_level == 1
    assert config.auto_advance is True
    assert config.advance_threshold == 50
    assert config.advance_policy == "flat"
    assert config.repeat_window_ms == 800
    assert config.edge_lines == 5
    assert config.gentle_timeout_ms == 5000
    assert config.moderate_delay_ms == 1000
    assert config.escalation_threshold == 3
    assert config.escalation_action is EscalationAction.EXTENDED_HELP
    assert config.allow_skip is True
    assert config.hjkl_repeat_threshold == 4
    assert config.blocked_keys == frozenset(BLOCKED_KEY_CATEGORIES)
    assert "NvimTree" in config.excluded_filetypes
    assert len(config.excluded_filetypes) == len(EXCLUDED_FILETYPES)
    assert config.milestones == (5, 10, 25, 50, 100)


def test_missing_file_means_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.json") == MentorConfig()
    assert load_config(None) == MentorConfig()


def test_load_config_from_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "teaching_mode": 3,
                "learning_level": "2",
                "advance_policy": "scaled",
                "escalation_action": "demo",
                "allow_skip": False,
                "blocked_keys": ["arrow_keys", " mouse ", ""],
                "milestones": [10, 5, 10],
                "moderate_delay_ms": 750.0,
            }
        ),
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.teaching_mode is TeachingMode.STRICT
    assert config.learning_level == 2
    assert config.advance_policy == "scaled"
    assert config.escalation_action is EscalationAction.DEMO
    assert config.allow_skip is False
    assert config.blocked_keys == frozenset({"arrow_keys", "mouse"})
    assert config.milestones == (5, 10)
    assert config.moderate_delay_ms == 750


def test_non_object_root_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    try:
        load_config(path)
        raise AssertionError("Expected ValueError")
    except ValueError as exc:
        assert "JSON object" in str(exc)


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown config keys: colour, volume"):
        config_from_dict({"volume": 3, "colour": "red"})


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"teaching_mode": 7}, "Invalid teaching_mode"),
        ({"teaching_mode": True}, "Invalid teaching_mode"),
        ({"learning_level": 6}, "learning_level must be between 1 and 5"),
        ({"advance_policy": "exponential"}, "advance_policy must be one of"),
        ({"escalation_action": "shout"}, "Invalid escalation_action"),
        ({"auto_advance": "yes"}, "must be true or false"),
        ({"advance_threshold": 0}, "advance_threshold must be at least 1"),
        ({"gentle_timeout_ms": -1}, "gentle_timeout_ms must not be negative"),
        ({"repeat_window_ms": "soon"}, "must be an integer"),
        ({"blocked_keys": ["function_keys"]}, "Unknown blocked_keys categories: function_keys"),
        ({"blocked_keys": "mouse"}, "must be a list"),
        ({"milestones": [0, 5]}, "milestones must be positive"),
        ({"milestones": ["ten"]}, "Invalid milestone"),
    ],
)
def test_invalid_values_are_rejected(raw: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        config_from_dict(raw)


def test_with_overrides_validates() -> None:
    config = MentorConfig().with_overrides(teaching_mode=TeachingMode.GENTLE, edge_lines=2)
    assert config.teaching_mode is TeachingMode.GENTLE
    assert config.edge_lines == 2
    with pytest.raises(ValueError):
        MentorConfig().with_overrides(learning_level=0)
