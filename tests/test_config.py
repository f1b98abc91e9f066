"""
Tests for configuration loading and command line overrides.
"""

import json

import pytest

from pixelping.config import DEFAULT_CONFIG, Config, deep_update, load_config
from pixelping.main import apply_overrides, build_parser, main


def test_defaults():
    config = Config()
    assert config.get("target.prefix") == "2001:4c08:2028"
    assert config.get("stream.rate") == 100
    assert config.get("stream.workers") == 1
    assert config["icmp.id"] == 0xDEAD


def test_unknown_key():
    with pytest.raises(KeyError):
        Config().get("stream.nope")


def test_load_yaml(tmp_path):
    path = tmp_path / "pixelping.yaml"
    path.write_text("stream:\n  rate: 25\ntarget:\n  prefix: '2001:db8::'\n", encoding="utf-8")

    Config.load(str(path))

    assert Config.get("stream.rate") == 25
    assert Config.get("target.prefix") == "2001:db8::"
    # Untouched keys keep their defaults
    assert Config.get("stream.workers") == 1


def test_load_toml(tmp_path):
    path = tmp_path / "pixelping.toml"
    path.write_text("[icmp]\nprivileged = false\n", encoding="utf-8")

    assert load_config(str(path))["icmp"]["privileged"] is False


def test_load_json(tmp_path):
    path = tmp_path / "pixelping.json"
    path.write_text(json.dumps({"log": {"level": "debug"}}), encoding="utf-8")

    assert load_config(str(path))["log"]["level"] == "debug"


def test_bad_files_fall_back_to_defaults(tmp_path):
    unknown = tmp_path / "pixelping.ini"
    unknown.write_text("[stream]\nrate=1\n", encoding="utf-8")
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")

    assert load_config(str(unknown)) == DEFAULT_CONFIG
    assert load_config(str(broken)) == DEFAULT_CONFIG
    assert load_config(str(tmp_path / "missing.yaml")) == DEFAULT_CONFIG


def test_load_does_not_mutate_defaults(tmp_path):
    path = tmp_path / "c.json"
    path.write_text(json.dumps({"stream": {"rate": 7}}), encoding="utf-8")

    load_config(str(path))

    assert DEFAULT_CONFIG["stream"]["rate"] == 100


def test_deep_update_merges_nested():
    dst = {"a": {"b": 1, "c": 2}, "d": 3}
    assert deep_update(dst, {"a": {"c": 5}, "e": 6}) == {"a": {"b": 1, "c": 5}, "d": 3, "e": 6}


def test_flags_override_config():
    args = build_parser().parse_args(["--image", "x.gif", "--dst-net", "2001:db8::", "-x", "4", "--rate", "30"])
    config = Config()

    apply_overrides(config, args)

    assert config.get("target.prefix") == "2001:db8::"
    assert config.get("target.x") == 4
    assert config.get("target.y") == 0
    assert config.get("stream.rate") == 30
    assert config.get("stream.workers") == 1


def test_image_flag_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_missing_image_aborts_before_sending(tmp_path):
    status = await main(["--image", str(tmp_path / "missing.png")])
    assert status == 1


@pytest.mark.asyncio
async def test_non_positive_rate_is_rejected(tmp_path):
    status = await main(["--image", str(tmp_path / "missing.png"), "--rate", "0"])
    assert status == 2
