from pathlib import Path

import pytest

from parts_scanner.config import DEFAULT_CONFIG, _merge_dicts, load_config


def test_missing_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = load_config(tmp_path / "absent.yaml", configure_logging=False)

    assert config.api.base_url == "http://localhost:8000"
    assert config.api.timeout_seconds == 10.0
    assert config.scanner.history_limit == 10
    assert config.tones.enabled
    assert (tmp_path / "data" / "tones").is_dir()
    assert (tmp_path / "labels").is_dir()


def test_overrides_are_merged_and_normalised(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        f"""
api:
  base_url: https://shop.example.com/
  csrf_token: abc
scanner:
  history_limit: 0
tones:
  volume: 3
  directory: {tmp_path / "tones"}
labels:
  directory: {tmp_path / "labels"}
logging:
  level: debug
  file: {tmp_path / "logs" / "scanner.log"}
extra:
  note: kept
""",
        encoding="utf-8",
    )

    config = load_config(cfg, configure_logging=False)

    assert config.api.base_url == "https://shop.example.com"
    assert config.api.csrf_token == "abc"
    assert config.api.lookup_path == "/inventory/parts-inventory/scan"
    assert config.scanner.history_limit == 1
    assert config.tones.volume == 1.0
    assert config.logging.level == "DEBUG"
    assert Path(config.tones.directory).is_dir()
    assert (tmp_path / "logs").is_dir()
    assert config.raw["extra"] == {"note": "kept"}


def test_non_mapping_config_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg, configure_logging=False)


def test_merge_ignores_non_mapping_sections():
    merged = _merge_dicts(DEFAULT_CONFIG, {"api": "oops", "scanner": {"history_limit": 4}})
    assert merged["api"] == DEFAULT_CONFIG["api"]
    assert merged["scanner"]["history_limit"] == 4
    assert merged["scanner"]["decode_interval_ms"] == 100


def test_unknown_sections_stay_in_raw_only(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "config.yaml"
    cfg.write_text("ui:\n  theme: dark\n", encoding="utf-8")

    config = load_config(cfg, configure_logging=False)

    assert set(DEFAULT_CONFIG) == {"api", "scanner", "tones", "labels", "logging"}
    assert config.raw["ui"] == {"theme": "dark"}
    assert not hasattr(config, "ui")


def test_label_dpi_is_positive(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "config.yaml"
    cfg.write_text("labels:\n  dpi: 0\n", encoding="utf-8")
    assert load_config(cfg, configure_logging=False).labels.dpi == 1

