from __future__ import annotations

import json
from pathlib import Path

import yaml

from visual_history.config import AppConfig, load_config
from visual_history.main import main


def test_missing_config_yields_defaults_with_derived_paths(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.yml")

    assert isinstance(config, AppConfig)
    assert config.capture.screenshot_quality == 60
    assert config.search.default_limit == 50
    assert config.retention.interval_s == 86400.0
    assert config.database.url.endswith("history.db")
    assert config.keystore.settings_path.name == "settings.json"


def test_yaml_overrides(tmp_path: Path) -> None:
    path = tmp_path / "visual_history.yml"
    path.write_text(
        yaml.safe_dump(
            {
                "data_dir": str(tmp_path / "data"),
                "capture": {"screenshot_quality": 80},
                "search": {"color_threshold": 25},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.capture.screenshot_quality == 80
    assert config.search.color_threshold == 25.0
    assert config.database.url == f"sqlite:///{tmp_path / 'data' / 'history.db'}"
    assert config.keystore.settings_path == tmp_path / "data" / "settings.json"


def test_cli_stats_and_print_config(tmp_path: Path, capsys) -> None:
    path = tmp_path / "visual_history.yml"
    path.write_text(yaml.safe_dump({"data_dir": str(tmp_path)}), encoding="utf-8")

    main(["--config", str(path), "stats"])
    stats = json.loads(capsys.readouterr().out)
    main(["--config", str(path), "print-config"])
    printed = json.loads(capsys.readouterr().out)

    assert stats == {"stats": {"totalPages": 0, "totalScreenshots": 0, "oldestTimestamp": None}}
    assert printed["data_dir"] == str(tmp_path)
