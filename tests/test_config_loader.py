from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from discrete_control.config.loader import CONFIG_ENV_VAR, load_settings
from discrete_control.main import _build_parser, _cli_overrides, build_controller


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path):
    loaded = load_settings(project_root=tmp_path, config_path=None, cli_overrides={})

    assert loaded.config_path is None
    s = loaded.settings
    assert s.controller.max_actions == 1024
    assert s.controller.gravity_aware is True
    assert s.loop.fps == 60
    assert s.osc.send.prefix == "/discrete/status"
    assert s.mcp.transport == "stdio"


def test_yaml_is_deep_merged_with_cli_overrides(tmp_path: Path):
    _write(
        tmp_path / "config.yaml",
        """
controller:
  max_actions: 8
  movement_bounds:
    minx: -5
    maxx: 5
osc:
  send:
    port: 9100
logging:
  json: false
""",
    )

    args = _build_parser().parse_args(["--osc-send-ip", "10.0.0.2", "--no-gravity", "--fps", "30"])
    loaded = load_settings(project_root=tmp_path, config_path=None, cli_overrides=_cli_overrides(args))

    s = loaded.settings
    assert loaded.config_path == tmp_path / "config.yaml"
    assert s.controller.max_actions == 8
    assert s.controller.gravity_aware is False
    assert s.controller.movement_bounds.maxx == 5
    assert s.osc.send.ip == "10.0.0.2"
    assert s.osc.send.port == 9100
    assert s.loop.fps == 30
    assert s.logging.json_logs is False


def test_env_var_points_at_config(tmp_path: Path, monkeypatch):
    cfg = _write(tmp_path / "elsewhere.yaml", "loop:\n  autostart: false\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(cfg))

    loaded = load_settings(project_root=tmp_path / "missing", config_path=None, cli_overrides={})

    assert loaded.config_path == cfg
    assert loaded.settings.loop.autostart is False


def test_top_level_must_be_mapping(tmp_path: Path):
    cfg = _write(tmp_path / "bad.yaml", "- 1\n- 2\n")

    with pytest.raises(ValueError, match="mapping"):
        load_settings(project_root=tmp_path, config_path=cfg, cli_overrides={})


def test_inverted_bounds_are_rejected(tmp_path: Path):
    cfg = _write(tmp_path / "bad.yaml", "controller:\n  movement_bounds:\n    minz: 3\n    maxz: 1\n")

    with pytest.raises(ValidationError):
        load_settings(project_root=tmp_path, config_path=cfg, cli_overrides={})


def test_receiver_flags_are_exclusive():
    args = _build_parser().parse_args(["--enable-receiver", "--no-receiver"])

    with pytest.raises(SystemExit):
        _cli_overrides(args)


def test_build_controller_applies_gravity_and_start_pose(tmp_path: Path):
    cfg = _write(
        tmp_path / "config.yaml",
        "body:\n  start_position: [1, 0, 2]\n  start_rotation_y: 0.5\ncontroller:\n  gravity: 4\n",
    )
    settings = load_settings(project_root=tmp_path, config_path=cfg, cli_overrides={}).settings

    controller, body = build_controller(settings)

    assert controller.target() is body
    assert controller.gravity_aware is True
    assert body.position.x == 1.0 and body.position.z == 2.0
    assert body.rotation_y == 0.5
    assert [f.vector.y for f in body.forces] == [-4.0]
