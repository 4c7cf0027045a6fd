"""配置文件监听和热重载模块

监听配置文件的变化，当配置文件被修改时自动重新加载配置。
使用 watchdog 库监听文件系统事件，回调在应用的事件循环中执行，
这样重建的上游客户端与请求处理共用同一个事件循环。
"""

import asyncio
import json
import threading
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles
from loguru import logger
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .settings import Config, get_config_file_path


class ConfigFileHandler(FileSystemEventHandler):
    """配置文件变化事件处理器"""

    def __init__(self, config_path: Path, callback: Callable[[], None], delay: float = 0.1):
        """
        初始化配置文件处理器

        Args:
            config_path: 要监听的配置文件路径
            callback: 配置文件变化时的回调函数（在watchdog线程中调用）
            delay: 触发回调前的延迟，等待文件写入完成
        """
        self.config_path = config_path.resolve()
        self.callback = callback
        self.delay = delay
        self._last_modified = 0.0

    def on_modified(self, event) -> None:
        """处理文件修改事件"""
        if event.is_directory:
            return

        event_path = Path(event.src_path).resolve()
        if event_path != self.config_path:
            return

        # 编辑器保存时可能触发多次修改事件
        try:
            current_modified = event_path.stat().st_mtime
        except OSError:
            return
        if current_modified == self._last_modified:
            return
        self._last_modified = current_modified

        logger.info(f"配置文件已修改: {self.config_path}")
        threading.Timer(self.delay, self.callback).start()


class ConfigWatcher:
    """配置文件监听器

    监听指定的配置文件，校验通过后依次执行注册的异步回调。
    """

    def __init__(self, config_path: str | None = None):
        self.config_path = Path(config_path or get_config_file_path()).resolve()
        self.observer: Observer | None = None
        self.handler: ConfigFileHandler | None = None
        self._reload_callbacks: list[Callable[[], Awaitable[None]]] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def add_reload_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        """添加异步配置重载回调函数"""
        self._reload_callbacks.append(callback)

    async def start_watching(self) -> None:
        """开始监听配置文件变化"""
        if self.observer is not None:
            logger.warning("配置监听器已在运行")
            return

        if not self.config_path.exists():
            logger.warning(f"配置文件不存在，跳过监听: {self.config_path}")
            return

        self._loop = asyncio.get_running_loop()
        self.handler = ConfigFileHandler(self.config_path, self._on_config_changed)

        self.observer = Observer()
        self.observer.schedule(self.handler, str(self.config_path.parent), recursive=False)
        self.observer.start()

        logger.info(f"开始监听配置文件: {self.config_path}")

    def stop_watching(self) -> None:
        """停止监听配置文件变化"""
        if self.observer is None:
            return

        logger.info("停止配置文件监听")
        self.observer.stop()
        self.observer.join()
        self.observer = None
        self.handler = None
        self._loop = None

    def _on_config_changed(self) -> None:
        """watchdog线程中的回调，把处理逻辑提交到应用事件循环"""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.error("事件循环不可用，跳过配置重载")
            return
        asyncio.run_coroutine_threadsafe(self.process_config_change(), loop)

    async def process_config_change(self) -> None:
        """校验配置文件并执行所有重载回调"""
        logger.info("检测到配置文件变化，开始重新加载...")

        if not await self.validate_config_file():
            logger.error("配置文件格式无效，跳过重载")
            return

        for callback in self._reload_callbacks:
            try:
                await callback()
            except Exception as e:
                logger.error(
                    f"配置重载回调执行失败 {getattr(callback, '__name__', callback)}: {e}"
                )

        logger.info("配置重载完成")

    async def validate_config_file(self) -> bool:
        """验证配置文件是否为合法JSON并符合配置模型"""
        try:
            async with aiofiles.open(self.config_path, encoding="utf-8") as f:
                content = await f.read()
            Config.model_validate(json.loads(content))
            return True
        except (json.JSONDecodeError, OSError, ValidationError) as e:
            logger.error(f"配置文件验证失败: {e}")
            return False
