#!/usr/bin/env python3
"""
Kiro-Claude Proxy 启动脚本

使用 JSON 配置文件中的 host 和 port 启动服务器。
配置优先级：
1. 命令行指定的 --config 参数
2. 环境变量 CONFIG_PATH 指定的路径
3. ./config/settings.json (默认)
4. ./config/example.json (模板)
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

from src.config.settings import Config, get_config_file_path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="启动 Kiro-Claude Proxy")
    parser.add_argument("--config", type=str, help="JSON 配置文件路径 (默认为 config/settings.json)")
    parser.add_argument("--host", type=str, help="监听地址，覆盖配置文件")
    parser.add_argument("--port", type=int, help="监听端口，覆盖配置文件")
    parser.add_argument("--debug", action="store_true", help="启用DEBUG日志")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """主启动函数"""
    args = parse_args(argv)

    # 确保从项目根目录启动
    os.chdir(Path(__file__).parent)

    # 通过环境变量传给 src.main，使应用和热重载读取同一个文件
    if args.config:
        os.environ["CONFIG_PATH"] = args.config
    if args.debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
    config_path = get_config_file_path()

    try:
        config = Config.from_file_sync(config_path)
    except Exception as e:
        print(f"❌ 配置加载失败: {e}")
        sys.exit(1)

    host = args.host or os.getenv("HOST", config.server.host)
    port = args.port or int(os.getenv("PORT", config.server.port))

    print("🚀 启动 Kiro To Claude Server...")
    print(f"   配置文件: {config_path}")
    print(f"   监听地址: {host}:{port}")
    print(f"   Kiro区域: {config.kiro.region}")
    print()
    print("📋 重要端点:")
    print(f"   健康检查: http://{host}:{port}/health")
    print(f"   消息接口: http://{host}:{port}/v1/messages")
    print(f"   API文档: http://{host}:{port}/docs")
    print()

    uvicorn.run(
        "src.main:app",
        host=host,
        port=port,
        timeout_keep_alive=60,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
