"""Tests for configuration models and file/env/override precedence."""

import json

import pytest
from pydantic import ValidationError

from HitomiFetch.config import FetchConfig, load_config
from HitomiFetch.index import PartialGroupPolicy
from HitomiFetch.models import Format


def test_defaults_match_call_contract():
    config = FetchConfig()

    assert config.domain == "gold-usergeneratedcontent.net"
    assert config.metadata_host == "ltn.gold-usergeneratedcontent.net"
    assert config.referer == "https://hitomi.la"
    assert config.metadata.timeout_s == 3.0
    assert config.metadata.max_retries == 10
    assert config.resource.timeout_s > config.metadata.timeout_s
    assert config.download.concurrency == 4
    assert config.download.fail_fast is True
    assert config.download.format_priority == [Format.AVIF, Format.WEBP, Format.JXL]
    assert config.index.partial_group is PartialGroupPolicy.TRUNCATE


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        FetchConfig.model_validate({"metadata": {"timeout": 3}})


@pytest.mark.parametrize(
    "payload",
    [
        {"download": {"concurrency": 0}},
        {"download": {"format_priority": []}},
        {"download": {"format_priority": ["avif", "avif"]}},
        {"metadata": {"max_retries": -1}},
        {"domain": "https://example.org/"},
    ],
)
def test_invalid_values_rejected(payload):
    with pytest.raises(ValidationError):
        FetchConfig.model_validate(payload)


def test_precedence_file_env_overrides(tmp_path):
    path = tmp_path / "hitomi.yaml"
    path.write_text(
        "domain: files.example\n"
        "metadata:\n"
        "  timeout_s: 1.5\n"
        "  max_retries: 3\n"
        "download:\n"
        "  concurrency: 2\n",
        encoding="utf-8",
    )
    environ = {
        "HITOMI_METADATA__MAX_RETRIES": "5",
        "HITOMI_DOWNLOAD__FORMAT_PRIORITY": '["webp", "avif"]',
        "HITOMI_INDEX__PARTIAL_GROUP": "fail",
        "OTHER_VALUE": "ignored",
    }

    config = load_config(
        str(path), overrides={"download": {"concurrency": 6}}, environ=environ
    )

    assert config.domain == "files.example"
    assert config.metadata.timeout_s == 1.5
    assert config.metadata.max_retries == 5
    assert config.download.concurrency == 6
    assert config.download.format_priority == [Format.WEBP, Format.AVIF]
    assert config.index.partial_group is PartialGroupPolicy.FAIL


def test_json_file(tmp_path):
    path = tmp_path / "hitomi.json"
    path.write_text(json.dumps({"download": {"fail_fast": False}}), encoding="utf-8")

    assert load_config(str(path), environ={}).download.fail_fast is False


def test_missing_and_unsupported_files(tmp_path):
    with pytest.raises(ValueError):
        load_config(str(tmp_path / "absent.yaml"), environ={})

    other = tmp_path / "config.toml"
    other.write_text("x = 1", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(other), environ={})


def test_config_hash_tracks_settings():
    assert FetchConfig().config_hash() == FetchConfig().config_hash()
    assert FetchConfig().config_hash() != FetchConfig(domain="other.example").config_hash()


def test_file_must_hold_a_mapping(tmp_path):
    path = tmp_path / "hitomi.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(str(path), environ={})
