"""Configuration loader for cloud-backup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from cloudbackup.core.errors import ConfigurationError
from cloudbackup.core.fileutil import ensure_dir
from cloudbackup.core.models import PathSpec, ScheduleKind, normalize_path
from cloudbackup.core.schedule import parse_monthdays, parse_schedule, parse_weekdays

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "working_dir": "",
    "state_file": "",  # default: <home>/state.csv
    "log_file": "",  # default: <home>/cloud-backup.log
    "log_level": "info",
    "password": "",
    "compression_level": 2,
    "weekly": [],
    "monthly": [],
    "cloud": "",
    "cloud_dir": "",
    "targets": {},
    "paths": {},
}

_SCHEDULE_OPTIONS = {"once", "daily", "dayly", "weekly", "monthly"}
_MAPPING_KEYS = {"schedule", "exclude", "compression", "encryption", "cloud"}


@dataclass(frozen=True)
class Settings:
    """Validated configuration for one run."""

    home: Path
    working_dir: Path
    state_file: Path
    log_file: Path
    log_level: str = "info"
    password: str = ""
    compression_level: int = 2
    weekly_days: frozenset[int] = frozenset()
    monthly_days: frozenset[int] = frozenset()
    cloud_dir: str = ""
    paths: tuple[PathSpec, ...] = ()
    targets: dict = field(default_factory=dict, compare=False)

    def find(self, path: str | Path) -> PathSpec | None:
        """Look up a configured path by any spelling of it."""
        wanted = normalize_path(path)
        for spec in self.paths:
            if spec.path == wanted:
                return spec
        return None


def resolve_home() -> Path:
    """Resolve the state home: CBK_HOME env var > default ~/.cloud-backup."""
    env_home = os.environ.get("CBK_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.cloud-backup").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict. Top-level keys may be written with
        dashes (``working-dir``) or underscores.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except Exception:
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)
        if not isinstance(user_config, dict):
            log.warning("Config at %s is not a mapping, using defaults", path)
            user_config = {}
    else:
        log.debug("No config file at %s", path)

    user_config = {str(k).replace("-", "_"): v for k, v in user_config.items()}
    return _deep_merge(DEFAULTS, user_config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _as_path(value: object, default: Path) -> Path:
    text = str(value or "").strip()
    if not text:
        return default
    return Path(normalize_path(text))


def load_settings(config: dict, home: Path | None = None, registry=None) -> Settings:
    """Validate a merged config dict and build Settings.

    Remote targets are instantiated here, once per target name, and shared
    by every path that uses them.

    Raises:
        ConfigurationError: anything missing, malformed or unknown.
    """
    if registry is None:
        from cloudbackup.providers.registry import default_registry

        registry = default_registry()
    home = home or resolve_home()

    working = str(config.get("working_dir") or "").strip()
    if not working:
        raise ConfigurationError("working_dir is not specified")
    working_dir = Path(normalize_path(working))
    try:
        ensure_dir(working_dir)
    except OSError as e:
        raise ConfigurationError(f"Cannot create working_dir {working_dir}: {e}") from e

    try:
        level = int(config.get("compression_level", 2))
    except (TypeError, ValueError):
        raise ConfigurationError("compression_level must be an integer 0..9") from None
    if not 0 <= level <= 9:
        raise ConfigurationError(f"Bad compression level value: {level}")

    password = str(config.get("password") or "")
    cloud_dir = str(config.get("cloud_dir") or "").strip()
    if cloud_dir and not cloud_dir.endswith("/"):
        cloud_dir += "/"

    targets_cfg = config.get("targets") or {}
    if not isinstance(targets_cfg, dict):
        raise ConfigurationError("targets must be a mapping of target name to options")
    targets: dict = {}

    def get_target(name: str):
        if name not in targets:
            targets[name] = registry.create(name, targets_cfg.get(name) or {})
        return targets[name]

    default_cloud = str(config.get("cloud") or "").strip()
    if default_cloud:
        registry.get_entry(default_cloud)  # raises with the list of known targets

    raw_paths = config.get("paths") or {}
    if not isinstance(raw_paths, dict) or not raw_paths:
        raise ConfigurationError("No paths configured")

    specs: list[PathSpec] = []
    seen: dict[str, str] = {}
    for raw_path, value in raw_paths.items():
        spec = _parse_path(str(raw_path), value, password, default_cloud, registry, get_target)
        if spec.identity in seen:
            raise ConfigurationError(f"Path {raw_path} duplicates {seen[spec.identity]}")
        seen[spec.identity] = str(raw_path)
        specs.append(spec)

    return Settings(
        home=home,
        working_dir=working_dir,
        state_file=_as_path(config.get("state_file"), home / "state.csv"),
        log_file=_as_path(config.get("log_file"), home / "cloud-backup.log"),
        log_level=str(config.get("log_level") or "info").lower(),
        password=password,
        compression_level=level,
        weekly_days=parse_weekdays(config.get("weekly")),
        monthly_days=parse_monthdays(config.get("monthly")),
        cloud_dir=cloud_dir,
        paths=tuple(specs),
        targets=targets,
    )


def _split(value: object, sep: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [item.strip() for item in str(value).split(sep) if item.strip()]


def _flag(raw_path: str, value: dict, key: str, default: bool) -> bool:
    if key not in value:
        return default
    flag = value[key]
    if not isinstance(flag, bool):
        raise ConfigurationError(f"{key} must be true or false, path {raw_path} (got {flag!r})")
    return flag


def _parse_path(raw_path, value, password, default_cloud, registry, get_target) -> PathSpec:
    """Build a PathSpec from an option string, a mapping or nothing.

    Option string example: ``"weekly, no-compression, exclude:*.tmp:cache, ydisk"``.
    """
    schedule = ScheduleKind.ONCE
    exclude: list[str] = []
    compression = True
    encryption = bool(password)
    cloud = default_cloud

    if isinstance(value, dict):
        unknown = sorted(str(k) for k in value if k not in _MAPPING_KEYS)
        if unknown:
            raise ConfigurationError(f"Unknown option(s) {', '.join(unknown)}, path {raw_path}")
        if "schedule" in value:
            schedule = parse_schedule(str(value["schedule"]))
        exclude = _split(value.get("exclude"), ":")
        compression = _flag(raw_path, value, "compression", True)
        if "encryption" in value:
            encryption = _flag(raw_path, value, "encryption", encryption)
            if encryption and not password:
                raise ConfigurationError(f"Path {raw_path} requests encryption but no password is set")
        cloud = str(value.get("cloud") or cloud).strip()
    elif value is not None:
        for opt in _split(value, ","):
            lowered = opt.lower()
            if lowered in _SCHEDULE_OPTIONS:
                schedule = parse_schedule(lowered)
            elif lowered == "no-compression":
                compression = False
            elif lowered == "no-encryption":
                encryption = False
            elif lowered.startswith("exclude:"):
                exclude = _split(opt[len("exclude:"):], ":")
            elif opt in registry:
                cloud = opt
            else:
                raise ConfigurationError(f"Unknown option {opt!r}, path {raw_path}")

    if not cloud:
        raise ConfigurationError(f"Cloud name for path {raw_path} not specified")

    return PathSpec.create(
        raw_path,
        schedule=schedule,
        exclude=tuple(exclude),
        compression=compression,
        encryption=encryption,
        target=get_target(cloud),
    )
