"""Tests for settings and YAML config loading."""

from pathlib import Path

import pytest

from config import load_yaml_config
from config.settings import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MAX_WORKERS", raising=False)
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.rate_schedule == "2024"
        assert s.max_workers == 8
        assert s.run_timeout == 30.0
        assert s.block_negative_net_pay is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_WORKERS", "3")
        monkeypatch.setenv("BLOCK_NEGATIVE_NET_PAY", "true")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.max_workers == 3
        assert s.block_negative_net_pay is True

    def test_timeout_disabled(self) -> None:
        s = Settings(run_timeout_seconds=0, _env_file=None)  # type: ignore[call-arg]
        assert s.run_timeout is None


class TestLoadYamlConfig:
    def test_relative_name_reads_config_dir(self) -> None:
        config = load_yaml_config("sample_payroll.yaml")
        assert config["period"] == "2024-06"
        assert {s["id"] for s in config["structures"]} == {"standard", "senior"}

    def test_absolute_path(self, tmp_path: Path) -> None:
        path = tmp_path / "extra.yaml"
        path.write_text("answer: 42\n")
        assert load_yaml_config(str(path)) == {"answer": 42}
