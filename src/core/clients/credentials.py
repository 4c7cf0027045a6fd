"""Kiro CLI 凭据读取与缓存

Kiro CLI 使用 AWS OIDC 登录，令牌保存在本地 SQLite 数据库的 auth_kv 表中，
值的格式为 JSON 或 "前缀|JSON"。本模块只读取，不负责刷新令牌。
"""

import asyncio
import json
import sqlite3
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field

from .exceptions import KiroAuthenticationError

TOKEN_KEY = "kirocli:odic:token"


class KiroCredentials(BaseModel):
    """Kiro 访问凭据"""

    access_token: str = Field(description="访问令牌")
    refresh_token: str | None = Field(None, description="刷新令牌")
    expires_at: datetime | None = Field(None, description="过期时间")
    region: str | None = Field(None, description="AWS区域")
    start_url: str | None = Field(None, description="SSO起始地址")
    scopes: list[str] = Field([], description="授权范围")

    def is_expired(self, buffer_seconds: float = 0, now: datetime | None = None) -> bool:
        """令牌是否已过期（或将在 buffer_seconds 内过期）"""
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return now.timestamp() >= expires_at.timestamp() - buffer_seconds


def _connect_readonly(db_path: str) -> sqlite3.Connection:
    uri = f"{Path(db_path).resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def _parse_kv_value(value: str) -> dict:
    if "|" in value and not value.lstrip().startswith("{"):
        value = value[value.index("|") + 1 :]
    return json.loads(value)


def _read_kv(db_path: str, key: str) -> str | None:
    conn = _connect_readonly(db_path)
    try:
        row = conn.execute("SELECT value FROM auth_kv WHERE key = ?", (key,)).fetchone()
    finally:
        conn.close()
    return row[0] if row else None


def load_kiro_credentials(db_path: str) -> KiroCredentials:
    """从 Kiro CLI 数据库读取凭据

    Raises:
        KiroAuthenticationError: 数据库不存在、读取失败或没有可用令牌
    """
    if not Path(db_path).exists():
        raise KiroAuthenticationError(
            f"Kiro database not found at {db_path}. "
            "Make sure Kiro CLI is installed and you are logged in."
        )

    try:
        value = _read_kv(db_path, TOKEN_KEY)
    except sqlite3.Error as e:
        raise KiroAuthenticationError(f"Failed to read Kiro database: {e}") from e

    if not value:
        raise KiroAuthenticationError("No auth token found in Kiro database")

    try:
        token_data = _parse_kv_value(value)
    except json.JSONDecodeError as e:
        raise KiroAuthenticationError(f"Malformed auth data in Kiro database: {e}") from e

    if not token_data.get("access_token"):
        raise KiroAuthenticationError("Auth data missing access_token field")

    return KiroCredentials(
        access_token=token_data["access_token"],
        refresh_token=token_data.get("refresh_token"),
        expires_at=token_data.get("expires_at"),
        region=token_data.get("region"),
        start_url=token_data.get("start_url"),
        scopes=token_data.get("scopes") or [],
    )


def is_kiro_database_accessible(db_path: str) -> bool:
    if not Path(db_path).exists():
        return False
    try:
        _connect_readonly(db_path).close()
    except sqlite3.Error:
        return False
    return True


class CredentialCache:
    """带过期检查的凭据缓存

    以下情况重新读取数据库：
    - 尚未读取过
    - 令牌将在 expiry_buffer 秒内过期
    - 距离上次读取超过 refresh_interval 秒
    """

    def __init__(
        self,
        db_path: str,
        refresh_interval: float = 300,
        expiry_buffer: float = 300,
        loader: Callable[[str], KiroCredentials] = load_kiro_credentials,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.refresh_interval = refresh_interval
        self.expiry_buffer = expiry_buffer
        self._loader = loader
        self._clock = clock
        self._credentials: KiroCredentials | None = None
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    def needs_refresh(self) -> bool:
        if self._credentials is None or self._loaded_at is None:
            return True
        now = self._clock()
        if self._credentials.is_expired(
            self.expiry_buffer, datetime.fromtimestamp(now, timezone.utc)
        ):
            return True
        return now - self._loaded_at > self.refresh_interval

    async def get(self) -> KiroCredentials:
        """获取凭据，必要时从数据库重新读取"""
        async with self._lock:
            if self.needs_refresh():
                credentials = await asyncio.to_thread(self._loader, self.db_path)
                if credentials.is_expired(now=datetime.fromtimestamp(self._clock(), timezone.utc)):
                    raise KiroAuthenticationError(
                        "Kiro authentication expired. Please log in again."
                    )
                self._credentials = credentials
                self._loaded_at = self._clock()
                logger.info("[Kiro] Got fresh token from database")
            return self._credentials

    def clear(self) -> None:
        self._credentials = None
        self._loaded_at = None
