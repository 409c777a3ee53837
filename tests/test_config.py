"""
@description 配置管理模块测试
@responsibility 验证配置加载、验证、环境变量覆盖功能
"""

import os
import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from offline_cache.core.config import CacheConfig, Config, ConnectivityConfig, load_config


def _write_config(tmpdir: str, data: dict) -> Path:
    config_path = Path(tmpdir) / "config.yaml"
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)
    return config_path


class TestLoadConfigSuccess:
    """测试配置文件加载成功场景"""

    def test_load_config_success(self):
        """验证项目根目录的 config.yaml 加载成功"""
        config = load_config()

        assert isinstance(config, Config)
        assert config.database.url.startswith("sqlite+aiosqlite")
        assert config.cache.prefix == "@theater_offline_cache_"
        assert config.cache.max_items == 1000
        assert config.cache.max_bytes == 50 * 1024 * 1024
        assert config.cache.eviction_ratio == 0.3
        assert 10 <= config.cache.sweep_interval <= 30
        assert config.connectivity.probe_interval > 0
        assert config.dispatcher.fetch_timeout > 0

    def test_partial_config_uses_defaults(self, monkeypatch):
        """缺省的配置段使用默认值"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = _write_config(tmpdir, {"cache": {"max_items": 50}})
            monkeypatch.setenv("CONFIG_PATH", str(config_path))

            config = load_config()

            assert config.cache.max_items == 50
            assert config.cache.eviction_ratio == 0.3
            assert config.connectivity.initial_online is True

    def test_empty_config_file(self, monkeypatch):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text("", encoding="utf-8")
            monkeypatch.setenv("CONFIG_PATH", str(config_path))

            assert load_config() == Config()


class TestConfigNotExistsGenerateTemplate:
    """测试配置不存在时生成模板"""

    def test_config_not_exists_generate_template(self):
        """验证配置文件不存在时生成模板并抛出 SystemExit"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            template_path = Path(tmpdir) / "config.example.yaml"

            old_config_path = os.environ.get("CONFIG_PATH")
            try:
                os.environ["CONFIG_PATH"] = str(config_path)

                with pytest.raises(SystemExit):
                    load_config()

                assert template_path.exists(), "应生成 config.example.yaml"

                # 验证模板文件有效且可被加载
                with open(template_path, encoding="utf-8") as f:
                    content = yaml.safe_load(f)
                    assert "database" in content
                    assert "cache" in content
                    assert "connectivity" in content
                    Config(**content)
            finally:
                if old_config_path:
                    os.environ["CONFIG_PATH"] = old_config_path
                elif "CONFIG_PATH" in os.environ:
                    del os.environ["CONFIG_PATH"]


class TestEnvOverride:
    """测试环境变量覆盖"""

    def test_env_override_database_url(self, monkeypatch):
        monkeypatch.setenv("CACHE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        config = load_config()
        assert config.database.url == "sqlite+aiosqlite:///:memory:"

    def test_env_offline_mode(self, monkeypatch):
        monkeypatch.setenv("CACHE_OFFLINE_MODE", "1")
        config = load_config()
        assert config.connectivity.initial_online is False


class TestInvalidConfigValidation:
    """测试无效配置验证"""

    def test_invalid_config_validation(self, monkeypatch):
        """验证无效配置触发 Pydantic ValidationError"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = _write_config(
                tmpdir, {"cache": {"max_items": 0, "eviction_ratio": 1.5}}
            )
            monkeypatch.setenv("CONFIG_PATH", str(config_path))

            with pytest.raises(ValidationError):
                load_config()

    @pytest.mark.parametrize(
        "values",
        [
            {"max_items": 0},
            {"max_bytes": -1},
            {"eviction_ratio": 0},
            {"sweep_interval": 0},
            {"ttl_overrides": {"trending": 0}},
        ],
    )
    def test_cache_validators(self, values):
        with pytest.raises(ValidationError):
            CacheConfig(**values)

    def test_connectivity_validators(self):
        with pytest.raises(ValidationError):
            ConnectivityConfig(probe_interval=0)
        with pytest.raises(ValidationError):
            ConnectivityConfig(probe_timeout=-1)
