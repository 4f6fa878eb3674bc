from __future__ import annotations

import pytest

from orgactivity.config import load_config
from orgactivity.errors import ConfigError


def test_missing_required_inputs_are_reported() -> None:
    with pytest.raises(ConfigError, match="token, output_dir"):
        load_config(organization="acme", token="", output_dir=None)


def test_defaults_and_int_parsing() -> None:
    cfg = load_config(token="abc", organization="acme", output_dir="out", max_retries="5", activity_days=30)
    assert cfg.max_retries == 5
    assert cfg.activity_days == "30"
    assert cfg.concurrency == 8
    assert cfg.include_inactive is True
    assert cfg.api_url == "https://api.github.com"


def test_invalid_max_retries_is_a_config_error() -> None:
    with pytest.raises(ConfigError, match="max_retries"):
        load_config(token="abc", organization="acme", output_dir="out", max_retries="lots")


def test_toml_file_is_overridden_by_explicit_values(tmp_path) -> None:
    path = tmp_path / "orgactivity.toml"
    path.write_text(
        "\n".join(
            [
                "[orgactivity]",
                'organization = "from-file"',
                'token = "file-token"',
                'output_dir = "reports"',
                "activity_days = 14",
                'enterprise = "acme-corp"',
                "include_inactive = true",
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path, organization="from-cli", token=None, output_dir="")

    assert cfg.organization == "from-cli"
    assert cfg.token == "file-token"
    assert cfg.output_dir == "reports"
    assert cfg.activity_days == "14"
    assert cfg.enterprise == "acme-corp"
    assert cfg.include_inactive is True


def test_missing_config_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.toml", token="a", organization="b", output_dir="c")


def test_masked_dict_hides_tokens() -> None:
    cfg = load_config(token="ghp_supersecret", organization="acme", output_dir="out", directory_token="org-token-1234")
    masked = cfg.masked_dict()
    assert masked["token"].endswith("cret")
    assert "supersecret" not in masked["token"]
    assert masked["directory_token"] == "**********1234"


def test_short_tokens_are_half_masked() -> None:
    cfg = load_config(token="abcd", organization="acme", output_dir="out")
    assert cfg.masked_dict()["token"] == "**cd"
