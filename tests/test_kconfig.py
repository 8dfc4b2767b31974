"""Tests for kconfig module."""

import logging
from unittest.mock import patch

import pytest

from rtkernel.exceptions import ConfigMergeError
from rtkernel.kconfig import ConfigComposer, ConfigurationSet, KconfigNormalizer, load_fragment

from tests.conftest import BASE_CONFIG, FRAGMENT


class TestConfigurationSet:
    """Tests for ConfigurationSet class."""

    def test_from_text(self):
        """Test set, unset and quoted values."""
        config = ConfigurationSet.from_text(BASE_CONFIG)
        assert config["CONFIG_PREEMPT"] == "y"
        assert config["CONFIG_PREEMPT_RT"] == "n"
        assert config["CONFIG_KVM"] == "m"
        assert config["CONFIG_HZ"] == "250"
        assert config["CONFIG_LOCALVERSION"] == '""'
        assert len(config) == 8

    def test_comments_ignored(self):
        config = ConfigurationSet.from_text("# Linux/arm64 Kernel Configuration\n\nCONFIG_A=y\n")
        assert list(config) == ["CONFIG_A"]

    def test_to_text_unset(self):
        """Test n is written back as a not-set comment."""
        text = ConfigurationSet({"CONFIG_A": "y", "CONFIG_B": "n"}).to_text()
        assert text == "CONFIG_A=y\n# CONFIG_B is not set\n"

    def test_write_and_read(self, tmp_path):
        config = ConfigurationSet.from_text(BASE_CONFIG)
        path = config.write(tmp_path / ".config")
        assert ConfigurationSet.from_file(path) == config

    def test_overlay_fragment_wins(self):
        """Test every fragment option keeps the fragment's value."""
        base = ConfigurationSet.from_text(BASE_CONFIG)
        fragment = ConfigurationSet.from_text(FRAGMENT)
        merged = base.overlay(fragment)

        for name in fragment:
            assert merged[name] == fragment[name]
        assert merged["CONFIG_NO_HZ_IDLE"] == "y"
        assert "CONFIG_PREEMPT_RT" in merged

    def test_differences(self):
        requested = ConfigurationSet({"CONFIG_A": "y", "CONFIG_B": "n", "CONFIG_C": "m"})
        actual = ConfigurationSet({"CONFIG_A": "y", "CONFIG_C": "y"})
        assert requested.differences(actual) == [("CONFIG_C", "m", "y")]


class TestConfigComposer:
    """Tests for ConfigComposer class."""

    def test_compose_without_normalizer(self):
        """Test a plain overlay when no normalizer is set."""
        base = ConfigurationSet.from_text(BASE_CONFIG)
        fragment = ConfigurationSet.from_text(FRAGMENT)
        final = ConfigComposer().compose(base, fragment)

        assert final["CONFIG_PREEMPT_RT"] == "y"
        assert final["CONFIG_PREEMPT"] == "n"
        assert final["CONFIG_HZ"] == "1000"
        assert final["CONFIG_KVM"] == "m"

    def test_normalizer_applied(self):
        """Test the normalized result is returned."""
        normalized = ConfigurationSet({"CONFIG_PREEMPT_RT": "y", "CONFIG_HZ": "1000"})
        calls = []

        def normalizer(config):
            calls.append(config)
            return normalized

        final = ConfigComposer(normalizer).compose(
            ConfigurationSet.from_text(BASE_CONFIG),
            ConfigurationSet({"CONFIG_PREEMPT_RT": "y"}),
        )
        assert final is normalized
        assert calls[0]["CONFIG_PREEMPT_RT"] == "y"

    def test_dropped_option_warns(self, caplog):
        """Test a requested value lost in normalization is reported."""
        composer = ConfigComposer(lambda config: ConfigurationSet({"CONFIG_HZ": "250"}))
        with caplog.at_level(logging.WARNING, logger="rtkernel"):
            composer.compose(ConfigurationSet(), ConfigurationSet({"CONFIG_HZ": "1000"}))
        assert "CONFIG_HZ" in caplog.text


class TestKconfigNormalizer:
    """Tests for KconfigNormalizer class."""

    @pytest.fixture
    def tree(self, tmp_path):
        script = tmp_path / "scripts" / "kconfig" / "merge_config.sh"
        script.parent.mkdir(parents=True)
        script.write_text("#!/bin/sh\n")
        return tmp_path

    def test_missing_script(self, tmp_path):
        normalizer = KconfigNormalizer(tmp_path, "arm64", "aarch64-linux-gnu-")
        with pytest.raises(ConfigMergeError):
            normalizer(ConfigurationSet({"CONFIG_A": "y"}))

    def test_merge(self, tree):
        """Test .config is written, merged and read back."""

        def fake_merge(cmd, cwd=None, env=None, timeout=None, **kwargs):
            assert cmd == ["bash", "scripts/kconfig/merge_config.sh", ".config"]
            assert env["ARCH"] == "arm64"
            assert env["CROSS_COMPILE"] == "aarch64-linux-gnu-"
            written = (cwd / ".config").read_text()
            (cwd / ".config").write_text(written + "CONFIG_RCU_BOOST=y\n")
            return 0, "", ""

        with patch("rtkernel.kconfig.run_command", side_effect=fake_merge):
            result = KconfigNormalizer(tree, "arm64", "aarch64-linux-gnu-").normalize(
                ConfigurationSet({"CONFIG_PREEMPT_RT": "y"})
            )

        assert result["CONFIG_PREEMPT_RT"] == "y"
        assert result["CONFIG_RCU_BOOST"] == "y"

    def test_merge_failure(self, tree):
        with patch("rtkernel.kconfig.run_command", return_value=(2, "", "make: *** error")):
            with pytest.raises(ConfigMergeError) as exc_info:
                KconfigNormalizer(tree, "arm64", "aarch64-linux-gnu-").normalize(ConfigurationSet())
        assert "make: *** error" in str(exc_info.value)


class TestLoadFragment:
    """Tests for load_fragment function."""

    def test_load(self, tmp_path):
        path = tmp_path / ".config-fragment"
        path.write_text(FRAGMENT)
        assert load_fragment(path)["CONFIG_PREEMPT_RT"] == "y"

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigMergeError) as exc_info:
            load_fragment(tmp_path / "missing")
        assert exc_info.value.kind == "CONFIG_MERGE"
