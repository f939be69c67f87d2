import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class ApiConfig:
    base_url: str = "http://localhost:8000"
    lookup_path: str = "/inventory/parts-inventory/scan"
    quick_update_path: str = "/inventory/parts-inventory/{part_id}/quick-update"
    csrf_token: str = ""
    timeout_seconds: float = 10.0


@dataclass
class ScannerConfig:
    history_limit: int = 10
    camera_device: str = ""
    decode_interval_ms: int = 100


@dataclass
class ToneConfig:
    enabled: bool = True
    volume: float = 1.0
    directory: str = "./data/tones"


@dataclass
class LabelConfig:
    directory: str = "./labels"
    dpi: int = 300
    font_size: int = 11


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""


@dataclass
class AppConfig:
    api: ApiConfig
    scanner: ScannerConfig
    tones: ToneConfig
    labels: LabelConfig
    logging: LoggingConfig
    raw: Dict[str, Any]


DEFAULT_CONFIG: Dict[str, Any] = {
    "api": {
        "base_url": "http://localhost:8000",
        "lookup_path": "/inventory/parts-inventory/scan",
        "quick_update_path": "/inventory/parts-inventory/{part_id}/quick-update",
        "csrf_token": "",
        "timeout_seconds": 10,
    },
    "scanner": {"history_limit": 10, "camera_device": "", "decode_interval_ms": 100},
    "tones": {"enabled": True, "volume": 1.0, "directory": "./data/tones"},
    "labels": {"directory": "./labels", "dpi": 300, "font_size": 11},
    "logging": {"level": "INFO", "file": "./logs/scanner.log"},
}


def _merge_dicts(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for key, value in defaults.items():
        if isinstance(value, dict):
            override_sub = overrides.get(key, {}) if isinstance(overrides.get(key, {}), dict) else {}
            merged[key] = _merge_dicts(value, override_sub)
        else:
            merged[key] = overrides.get(key, value)
    # include keys present only in overrides
    for key, value in overrides.items():
        if key not in merged:
            merged[key] = value
    return merged


def load_config(path: Path, *, configure_logging: bool = True) -> AppConfig:
    """
    Read the scanner configuration from YAML.

    Missing keys fall back to ``DEFAULT_CONFIG``. The tone, label and log
    directories are created before returning.
    """
    cfg_path = Path(path)
    user_config: Dict[str, Any] = {}
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"{cfg_path.name} is not a valid mapping")
            user_config = loaded
    else:
        logging.warning("Config file %s not found. Using defaults.", cfg_path)

    merged = _merge_dicts(DEFAULT_CONFIG, user_config)

    api = merged["api"]
    api_cfg = ApiConfig(
        base_url=str(api.get("base_url", "http://localhost:8000")).rstrip("/"),
        lookup_path=str(api.get("lookup_path", ApiConfig.lookup_path)),
        quick_update_path=str(api.get("quick_update_path", ApiConfig.quick_update_path)),
        csrf_token=str(api.get("csrf_token") or ""),
        timeout_seconds=float(api.get("timeout_seconds", 10)),
    )
    scanner_cfg = ScannerConfig(
        history_limit=max(1, int(merged["scanner"].get("history_limit", 10))),
        camera_device=str(merged["scanner"].get("camera_device") or ""),
        decode_interval_ms=int(merged["scanner"].get("decode_interval_ms", 100)),
    )
    tone_cfg = ToneConfig(
        enabled=bool(merged["tones"].get("enabled", True)),
        volume=min(1.0, max(0.0, float(merged["tones"].get("volume", 1.0)))),
        directory=str(Path(merged["tones"].get("directory", "./data/tones")).expanduser()),
    )
    label_cfg = LabelConfig(
        directory=str(Path(merged["labels"].get("directory", "./labels")).expanduser()),
        dpi=max(1, int(merged["labels"].get("dpi", 300))),
        font_size=int(merged["labels"].get("font_size", 11)),
    )
    log_section = merged["logging"]
    log_file = log_section.get("file") or ""
    logging_cfg = LoggingConfig(
        level=str(log_section.get("level", "INFO")).upper(),
        file=str(Path(log_file).expanduser()) if log_file else "",
    )

    _ensure_directories(tone_cfg, label_cfg, logging_cfg)
    if configure_logging:
        _configure_logging(logging_cfg)

    return AppConfig(
        api=api_cfg,
        scanner=scanner_cfg,
        tones=tone_cfg,
        labels=label_cfg,
        logging=logging_cfg,
        raw=merged,
    )


def _ensure_directories(tone_cfg: ToneConfig, label_cfg: LabelConfig, logging_cfg: LoggingConfig) -> None:
    Path(tone_cfg.directory).expanduser().mkdir(parents=True, exist_ok=True)
    Path(label_cfg.directory).expanduser().mkdir(parents=True, exist_ok=True)
    if logging_cfg.file:
        Path(logging_cfg.file).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _configure_logging(logging_cfg: LoggingConfig) -> None:
    level = getattr(logging, logging_cfg.level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if logging_cfg.file:
        handlers.append(logging.FileHandler(logging_cfg.file))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
