"""
@description 配置管理模块
@responsibility 加载和验证 config.yaml，支持环境变量覆盖
"""

import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """持久化存储配置"""

    url: str = Field(
        default="sqlite+aiosqlite:///./db/cache.db", description="SQLAlchemy 异步连接串"
    )
    echo: bool = Field(default=False, description="是否输出 SQL 日志")


class CacheConfig(BaseModel):
    """TTL 缓存配置"""

    prefix: str = Field(default="@theater_offline_cache_", description="缓存 key 前缀")
    max_items: int = Field(default=1000, description="最大缓存条目数")
    max_bytes: int = Field(default=50 * 1024 * 1024, description="最大缓存字节数")
    eviction_ratio: float = Field(default=0.3, description="触发淘汰时清理的比例")
    sweep_interval: float = Field(default=20, description="过期清扫间隔（秒）")
    sweep_batch_size: int = Field(default=200, description="单次清扫最大删除条数")
    ttl_overrides: dict[str, int] = Field(
        default_factory=dict, description="按 kind 覆盖默认 TTL（秒）"
    )

    @field_validator("max_items", "max_bytes", "sweep_batch_size")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("必须为正整数")
        return value

    @field_validator("eviction_ratio")
    @classmethod
    def _valid_ratio(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ValueError("eviction_ratio 必须在 (0, 1] 区间内")
        return value

    @field_validator("sweep_interval")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("sweep_interval 必须大于 0")
        return value

    @field_validator("ttl_overrides")
    @classmethod
    def _positive_ttls(cls, value: dict[str, int]) -> dict[str, int]:
        for kind, ttl in value.items():
            if ttl <= 0:
                raise ValueError(f"kind '{kind}' 的 TTL 必须大于 0")
        return value


class ConnectivityConfig(BaseModel):
    """网络连通性探测配置"""

    probe_url: str = Field(
        default="https://www.gstatic.com/generate_204", description="探测地址"
    )
    probe_interval: float = Field(default=30, description="探测间隔（秒）")
    probe_timeout: float = Field(default=5, description="单次探测超时（秒）")
    initial_online: bool = Field(default=True, description="首次探测前的默认状态")

    @field_validator("probe_interval", "probe_timeout")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("必须大于 0")
        return value


class DispatcherConfig(BaseModel):
    """请求调度配置"""

    fetch_timeout: float = Field(default=15, description="远程请求超时（秒）")


class Config(BaseModel):
    """全局配置"""

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="数据库配置"
    )
    cache: CacheConfig = Field(default_factory=CacheConfig, description="缓存配置")
    connectivity: ConnectivityConfig = Field(
        default_factory=ConnectivityConfig, description="连通性配置"
    )
    dispatcher: DispatcherConfig = Field(
        default_factory=DispatcherConfig, description="调度器配置"
    )


def get_config_path() -> Path:
    """获取配置文件路径"""
    # 优先使用 CONFIG_PATH 环境变量，否则使用项目根目录的 config.yaml
    if config_path_str := os.environ.get("CONFIG_PATH"):
        return Path(config_path_str)
    return Path(__file__).parent.parent.parent / "config.yaml"


def load_config() -> Config:
    """加载配置文件并应用环境变量覆盖"""
    config_path = get_config_path()

    # 配置文件不存在时生成模板并退出
    if not config_path.exists():
        _generate_config_template(config_path)
        print(f"错误: 配置文件不存在: {config_path}")
        print(f"已生成配置模板: {config_path.parent / 'config.example.yaml'}")
        sys.exit(1)

    with open(config_path, encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    config = Config(**config_data)

    # 应用环境变量覆盖
    if database_url := os.environ.get("CACHE_DATABASE_URL"):
        config.database.url = database_url
    if os.environ.get("CACHE_OFFLINE_MODE", "").strip() in ("1", "true", "yes"):
        config.connectivity.initial_online = False

    return config


def _generate_config_template(config_path: Path) -> None:
    """生成配置模板文件"""
    template_path = config_path.parent / "config.example.yaml"

    if template_path.exists():
        return

    template_content = """# 持久化存储配置
database:
  # SQLAlchemy 异步连接串
  url: "sqlite+aiosqlite:///./db/cache.db"
  echo: false

# TTL 缓存配置
cache:
  prefix: "@theater_offline_cache_"
  # 条目数或总字节数达到上限时，按写入时间淘汰最旧的 30%
  max_items: 1000
  max_bytes: 52428800
  eviction_ratio: 0.3
  # 后台清扫过期条目的间隔（秒）和单次最大删除数
  sweep_interval: 20
  sweep_batch_size: 200
  # 按 kind 覆盖默认 TTL（秒），例如：
  # ttl_overrides:
  #   trending: 3600
  ttl_overrides: {}

# 网络连通性探测
connectivity:
  probe_url: "https://www.gstatic.com/generate_204"
  probe_interval: 30
  probe_timeout: 5
  initial_online: true

# 请求调度
dispatcher:
  # 远程请求超时（秒），超时后回退到缓存
  fetch_timeout: 15
"""

    with open(template_path, "w", encoding="utf-8") as f:
        f.write(template_content)
