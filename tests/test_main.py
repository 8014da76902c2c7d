import json
from collections.abc import Callable
from pathlib import Path

import pytest

import vimmentor.main as main


def _inputs(*values: str) -> Callable[[str], str]:
    remaining = iter(values)
    return lambda _prompt: next(remaining)


def _args(tmp_path: Path, *extra: str) -> list[str]:
    return [*extra, "--db", str(tmp_path / "progress.db"), "--config", str(tmp_path / "config.json")]


def test_play_strict_requires_the_suggested_motion(tmp_path: Path) -> None:
    outputs: list[str] = []
    code = main.run(
        _args(tmp_path, "play", "--mode", "3"),
        input_fn=_inputs("<Down>", "k", ":skip", "j", ":q"),
        print_fn=outputs.append,
    )
    assert code == 0
    assert "[vim-mentor] Detected: Arrow Key (Down) (<Down>)" in outputs
    assert any(line.startswith("  Use:  j") for line in outputs)
    assert "Not quite. Expected e.g.: j" in outputs
    assert "Skipping is not allowed in this mode." in outputs
    assert "Correct." in outputs
    assert any(line.startswith("\n[idle]   2:") for line in outputs)
    assert outputs[-1] == "\nSession complete: 1 corrected, 1 hints shown"


def test_play_moderate_runs_action_after_delay(tmp_path: Path) -> None:
    outputs: list[str] = []
    main.run(
        _args(tmp_path, "--mode", "2"),
        input_fn=_inputs("<Down>", "<Up>", ":wait 1000", ":q"),
        print_fn=outputs.append,
    )
    assert "(ignored while a hint is active)" in outputs
    assert any(line.startswith("\n[delaying]   1:") for line in outputs)
    assert any(line.startswith("\n[idle]   2:") for line in outputs)


def test_play_native_keys_and_shell_commands(tmp_path: Path) -> None:
    outputs: list[str] = []
    main.run(
        _args(tmp_path, "--mode", "1"),
        input_fn=_inputs("", "zz", "3j", ":skip", ":mode 9", ":mode 4", ":wait soon", ":help", ":status", ":exit"),
        print_fn=outputs.append,
    )
    assert "Unknown key: zz" in outputs
    assert any(line.startswith("\n[idle]   4:") for line in outputs)
    assert "Nothing to skip." in outputs
    assert "Usage: :mode <1-4>  (1 Gentle, 2 Moderate, 3 Strict, 4 Master)" in outputs
    assert "Teaching mode: Master" in outputs
    assert "Usage: :wait <milliseconds>" in outputs
    assert outputs.count(main.HELP_LINES[1]) == 2
    assert "- Teaching mode: Master" in outputs


def test_status_command_prints_progress_table(tmp_path: Path) -> None:
    main.run(_args(tmp_path, "--mode", "3"), input_fn=_inputs("<Down>", "j", ":q"), print_fn=lambda _line: None)

    outputs: list[str] = []
    assert main.run(_args(tmp_path, "status"), print_fn=outputs.append) == 0
    assert "- Level: 1 (Beginner)" in outputs
    assert "- Teaching mode: Moderate" in outputs
    assert "- Streak: 1 (best 1)" in outputs
    assert "- Next level (Elementary) at 50 correct (now 1)" in outputs
    assert "- Lifetime: 1 correct, 1 prompted, 1 sessions" in outputs
    header = next(line for line in outputs if line.startswith("Command"))
    assert header.endswith("Accuracy")
    assert any(line.split() == ["j", "1", "1", "100%"] for line in outputs)


def test_status_command_without_history(tmp_path: Path) -> None:
    outputs: list[str] = []
    main.run(_args(tmp_path, "status"), print_fn=outputs.append)
    assert "No commands practiced yet." in outputs


def test_read_only_commands_do_not_count_as_sessions(tmp_path: Path) -> None:
    main.run(_args(tmp_path, "status"), print_fn=lambda _line: None)
    main.run(_args(tmp_path, "rules"), print_fn=lambda _line: None)

    outputs: list[str] = []
    main.run(_args(tmp_path, "status", "--mode", "3"), print_fn=outputs.append)
    assert "- Lifetime: 0 correct, 0 prompted, 0 sessions" in outputs
    assert "- Teaching mode: Strict" in outputs


def test_rules_command_lists_every_operation(tmp_path: Path) -> None:
    outputs: list[str] = []
    assert main.run(_args(tmp_path, "rules"), print_fn=outputs.append) == 0
    header = next(line for line in outputs if line.startswith("Operation"))
    assert "Suggestion" in header
    assert any(line.startswith("arrow_up") and "{count}k" in line for line in outputs)
    assert any("near_top_edge=True" in line for line in outputs)
    assert any(line.startswith("page_down") for line in outputs)


def test_reset_requires_confirmation(tmp_path: Path) -> None:
    main.run(_args(tmp_path, "--mode", "3"), input_fn=_inputs("<Down>", "j", ":q"), print_fn=lambda _line: None)

    outputs: list[str] = []
    main.run(_args(tmp_path, "reset"), input_fn=_inputs("yes"), print_fn=outputs.append)
    assert "Reset cancelled." in outputs

    outputs.clear()
    main.run(_args(tmp_path, "reset"), input_fn=_inputs("YES"), print_fn=outputs.append)
    assert "Progress reset." in outputs

    outputs.clear()
    main.run(_args(tmp_path, "status"), print_fn=outputs.append)
    assert "No commands practiced yet." in outputs
    assert "- Lifetime: 0 correct, 0 prompted, 0 sessions" in outputs


def test_export_command(tmp_path: Path) -> None:
    outputs: list[str] = []
    assert main.run(_args(tmp_path, "export"), print_fn=outputs.append) == 2
    assert outputs == ["Export needs an output path."]

    export_path = tmp_path / "export.json"
    outputs.clear()
    assert main.run(_args(tmp_path, "export", str(export_path)), print_fn=outputs.append) == 0
    assert outputs[0].startswith("Exported profile 'default'")
    payload = json.loads(export_path.read_text(encoding="utf-8"))
    assert payload["profile"]["name"] == "default"


def test_profiles_are_separate(tmp_path: Path) -> None:
    main.run(
        _args(tmp_path, "--mode", "3", "--profile", "sam"),
        input_fn=_inputs("<Down>", "j", ":q"),
        print_fn=lambda _line: None,
    )
    outputs: list[str] = []
    main.run(_args(tmp_path, "status"), print_fn=outputs.append)
    assert "Profile: default" in outputs
    assert "No commands practiced yet." in outputs


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text(json.dumps({"volume": 11}), encoding="utf-8")
    outputs: list[str] = []
    assert main.run(_args(tmp_path, "status"), print_fn=outputs.append) == 2
    assert outputs == ["Invalid configuration: Unknown config keys: volume"]


def test_main_entry_exits_with_run_code(monkeypatch) -> None:
    monkeypatch.setattr(main, "run", lambda: 3)
    with pytest.raises(SystemExit) as excinfo:
        main.main_entry()
    assert excinfo.value.code == 3


def test_profiles_command_marks_current_profile(tmp_path: Path) -> None:
    main.run(_args(tmp_path, "status", "--profile", "sam"), print_fn=lambda _line: None)
    outputs: list[str] = []
    assert main.run(_args(tmp_path, "profiles"), print_fn=outputs.append) == 0
    assert outputs[-2:] == ["* default", "  sam"]
