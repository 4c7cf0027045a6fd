"""配置模型与加载

配置文件为JSON格式，查找顺序：
1. 显式传入的路径
2. 环境变量 CONFIG_PATH
3. ./config/settings.json
4. ./config/example.json (模板)
都不存在时使用内置默认值。
"""

import json
import os
import platform
from pathlib import Path

import aiofiles
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config/settings.json"
EXAMPLE_CONFIG_PATH = "config/example.json"

# Anthropic 模型名 -> Kiro 内部模型ID
DEFAULT_MODEL_MAPPING = {
    "claude-sonnet-4-5": "claude-sonnet-4.5",
    "claude-sonnet-4-5-thinking": "claude-sonnet-4.5",
    "claude-sonnet-4": "claude-sonnet-4",
    "claude-sonnet-4-thinking": "claude-sonnet-4",
    "claude-haiku-4-5": "claude-haiku-4.5",
    "claude-opus-4-5": "claude-opus-4.5",
    "claude-opus-4-5-thinking": "claude-opus-4.5",
    "auto": "auto",
}


def get_default_kiro_db_path() -> str:
    """Kiro CLI 在各平台保存OAuth令牌的SQLite数据库路径"""
    home = Path.home()
    system = platform.system()
    if system == "Darwin":
        return str(home / "Library/Application Support/kiro-cli/data.sqlite3")
    if system == "Windows":
        return str(home / "AppData/Roaming/kiro-cli/data.sqlite3")
    return str(home / ".config/kiro-cli/data.sqlite3")


class KiroConfig(BaseModel):
    """Kiro (AWS CodeWhisperer) 上游配置"""

    region: str = Field("us-east-1", description="AWS区域，凭据中带有区域时以凭据为准")
    db_path: str = Field(
        default_factory=get_default_kiro_db_path,
        description="Kiro CLI 凭据数据库路径",
    )
    endpoint: str | None = Field(None, description="自定义上游地址，覆盖区域映射")
    timeout: float = Field(300.0, gt=0, description="上游请求超时时间（秒）")
    max_retries: int = Field(3, ge=1, description="最大尝试次数")
    token_refresh_interval: int = Field(
        300, ge=0, description="凭据缓存的最长有效时间（秒）"
    )
    expiry_buffer: int = Field(
        300, ge=0, description="在令牌过期前多少秒视为需要重新读取"
    )


class ServerConfig(BaseModel):
    """服务器配置"""

    host: str = Field("0.0.0.0", description="监听地址")
    port: int = Field(8080, ge=1, le=65535, description="监听端口")


class LoggingConfig(BaseModel):
    """日志配置"""

    level: str = Field("INFO", description="日志级别")
    file: str | None = Field("logs/app.log", description="日志文件路径，为空时只输出到控制台")
    rotation: str = Field("10 MB", description="日志文件轮转大小")
    retention: str = Field("3 days", description="日志文件保留时间")


class ModelConfig(BaseModel):
    """模型映射配置"""

    mapping: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MODEL_MAPPING),
        description="Anthropic模型名到Kiro模型ID的映射",
    )
    default: str = Field("claude-opus-4.5", description="无法识别时使用的Kiro模型ID")


class Config(BaseModel):
    """应用配置"""

    kiro: KiroConfig = Field(default_factory=KiroConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    api_key: str | None = Field(None, description="代理访问密钥，为空时不校验")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)

    @classmethod
    async def from_file(cls, config_path: str | None = None) -> "Config":
        """从JSON文件异步加载配置"""
        path = Path(config_path) if config_path else Path(get_config_file_path())
        if not path.exists():
            logger.warning(f"配置文件不存在，使用默认配置: {path}")
            return cls()._apply_env_overrides()

        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
        return cls.model_validate(json.loads(content))._apply_env_overrides()

    @classmethod
    def from_file_sync(cls, config_path: str | None = None) -> "Config":
        """从JSON文件同步加载配置（模块导入阶段使用）"""
        path = Path(config_path) if config_path else Path(get_config_file_path())
        if not path.exists():
            return cls()._apply_env_overrides()
        config = cls.model_validate(json.loads(path.read_text(encoding="utf-8")))
        return config._apply_env_overrides()

    def _apply_env_overrides(self) -> "Config":
        """环境变量 LOG_LEVEL / KIRO_DB_PATH 覆盖文件配置"""
        if os.getenv("LOG_LEVEL"):
            self.logging.level = os.environ["LOG_LEVEL"].upper()
        if os.getenv("KIRO_DB_PATH"):
            self.kiro.db_path = os.environ["KIRO_DB_PATH"]
        return self

    async def get_server_config(self) -> tuple[str, int]:
        """获取服务器监听地址和端口，环境变量 HOST / PORT 优先"""
        host = os.getenv("HOST", self.server.host)
        port = int(os.getenv("PORT", self.server.port))
        return host, port


# 全局配置实例
_config: Config | None = None


def get_config_file_path() -> str:
    """获取当前生效的配置文件路径"""
    env_path = os.getenv("CONFIG_PATH")
    if env_path:
        return env_path
    if Path(DEFAULT_CONFIG_PATH).exists() or not Path(EXAMPLE_CONFIG_PATH).exists():
        return DEFAULT_CONFIG_PATH
    return EXAMPLE_CONFIG_PATH


async def get_config() -> Config:
    """获取全局配置，首次调用时加载"""
    global _config
    if _config is None:
        _config = await Config.from_file()
    return _config


async def reload_config(config_path: str | None = None) -> Config:
    """重新加载配置文件并替换全局配置"""
    global _config
    _config = await Config.from_file(config_path)
    logger.info("配置已重新加载")
    return _config


def set_config(config: Config) -> None:
    """直接设置全局配置（应用启动和测试使用）"""
    global _config
    _config = config
