from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from orgactivity.errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MAX_RETRIES = 3
DEFAULT_CONCURRENCY = 8
DEFAULT_RUN_TIMEOUT_S = 3600.0

REQUIRED_KEYS = ("token", "organization", "output_dir")


def _mask_secret(token: str | None, visible: int = 4) -> str | None:
    if not token:
        return token
    # Short tokens still hide at least half.
    hidden = max(len(token) - visible, len(token) // 2)
    return "*" * hidden + token[hidden:]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(data: dict[str, Any], key: str, default: int, *, minimum: int = 0) -> int:
    raw = data.get(key)
    if _is_blank(raw):
        return default
    try:
        value = int(str(raw).strip())
    except ValueError as e:
        raise ConfigError(f"Invalid {key}: {raw!r} (expected an integer)") from e
    if value < minimum:
        raise ConfigError(f"Invalid {key}: {value} (must be >= {minimum})")
    return value


def _as_float(data: dict[str, Any], key: str, default: float) -> float:
    raw = data.get(key)
    if _is_blank(raw):
        return default
    try:
        value = float(str(raw).strip())
    except ValueError as e:
        raise ConfigError(f"Invalid {key}: {raw!r} (expected a number of seconds)") from e
    if value < 0:
        raise ConfigError(f"Invalid {key}: {value} (must not be negative)")
    return value


def _as_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    raw = data.get(key)
    if _is_blank(raw):
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"Invalid {key}: {raw!r} (expected true/false)")


def _opt_str(data: dict[str, Any], key: str) -> str | None:
    raw = data.get(key)
    return None if _is_blank(raw) else str(raw).strip()


@dataclass(frozen=True)
class ActivityConfig:
    token: str
    organization: str
    output_dir: str
    max_retries: int = DEFAULT_MAX_RETRIES
    since: str | None = None
    activity_days: str | None = None
    enterprise: str | None = None
    directory_token: str | None = None
    org_saml_directory: bool = False
    include_inactive: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    run_timeout_s: float = DEFAULT_RUN_TIMEOUT_S
    api_url: str = DEFAULT_API_URL

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()

    def masked_dict(self) -> dict[str, Any]:
        return {
            "organization": self.organization,
            "token": _mask_secret(self.token),
            "output_dir": str(self.output_path),
            "max_retries": self.max_retries,
            "since": self.since,
            "activity_days": self.activity_days,
            "enterprise": self.enterprise,
            "directory_token": _mask_secret(self.directory_token),
            "org_saml_directory": self.org_saml_directory,
            "include_inactive": self.include_inactive,
            "concurrency": self.concurrency,
            "run_timeout_s": self.run_timeout_s,
            "api_url": self.api_url,
        }


def read_config_file(path: Path) -> dict[str, Any]:
    path = path.expanduser()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    # Accept both a flat file and an [orgactivity] table.
    section = data.get("orgactivity")
    return dict(section) if isinstance(section, dict) else dict(data)


def load_config(path: Path | None = None, **overrides: Any) -> ActivityConfig:
    """
    Merge an optional TOML file with explicit values (CLI options / env vars).

    Blank values never override; required keys must end up non-blank.
    """
    data: dict[str, Any] = read_config_file(path) if path is not None else {}
    for key, value in overrides.items():
        if not _is_blank(value):
            data[key] = value

    missing = [k for k in REQUIRED_KEYS if _is_blank(data.get(k))]
    if missing:
        raise ConfigError(f"Input required and not supplied: {', '.join(missing)}")

    return ActivityConfig(
        token=str(data["token"]).strip(),
        organization=str(data["organization"]).strip(),
        output_dir=str(data["output_dir"]).strip(),
        max_retries=_as_int(data, "max_retries", DEFAULT_MAX_RETRIES),
        since=_opt_str(data, "since"),
        activity_days=_opt_str(data, "activity_days"),
        enterprise=_opt_str(data, "enterprise"),
        directory_token=_opt_str(data, "directory_token"),
        org_saml_directory=_as_bool(data, "org_saml_directory", False),
        include_inactive=_as_bool(data, "include_inactive", False),
        concurrency=_as_int(data, "concurrency", DEFAULT_CONCURRENCY, minimum=1),
        run_timeout_s=_as_float(data, "run_timeout_s", DEFAULT_RUN_TIMEOUT_S),
        api_url=(_opt_str(data, "api_url") or DEFAULT_API_URL).rstrip("/"),
    )
