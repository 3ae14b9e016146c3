#!/usr/bin/env python3
"""
FlowFocus 后台服务 - 主程序入口
FlowFocus Background Service - Main Entry Point

支持以下运行模式：
1. 服务模式（--serve，默认）：启动本地消息服务，处理界面发来的请求
2. 改写模式（--rewrite）：使用保存的模型配置改写一段文本后退出
3. 平台测试模式（--test-platform）：测试 config.yaml 中配置的智能表格平台连接
4. 平台列表（--list-platforms）：列出支持的平台及其必填字段

使用方法 Usage:
    # 启动消息服务
    python main.py --serve

    # 改写文本
    python main.py --rewrite "待改写的文本" --model-config my-qwen

    # 测试飞书连接
    python main.py --test-platform feishu
"""

import argparse
import copy
import logging
import os
import sys
from pathlib import Path

# 确保项目根目录在Python路径中
project_root = Path(__file__).resolve().parent
sys.path.insert(0, str(project_root))

from flowfocus.adapters import adapter_factory
from flowfocus.config import (
    DEFAULT_CONFIG,
    get_model_config,
    get_platform_config,
    get_storage_config,
    load_config_with_defaults,
)
from flowfocus.server import create_message_server
from flowfocus.services import ModelService
from flowfocus.storage import JsonFileStore, MemoryStore, StorageService


# 配置日志格式
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(verbose: bool = False) -> None:
    """
    配置日志系统
    Setup logging system

    Args:
        verbose: 是否启用详细日志（DEBUG级别）
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # 降低第三方库的日志级别
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description='FlowFocus 后台服务 - 文本改写与智能表格同步',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例 Examples:
  # 启动消息服务
  python main.py --serve

  # 使用保存的模型配置改写文本
  python main.py --rewrite "今天天气不错" --model-config my-qwen

  # 测试钉钉连接
  python main.py --test-platform dingtalk --verbose
        """
    )

    mode_group = parser.add_argument_group('运行模式 Mode Options')
    mode_group.add_argument(
        '--serve',
        action='store_true',
        help='启动本地消息服务（默认模式）/ Start the message server'
    )
    mode_group.add_argument(
        '--rewrite',
        metavar='TEXT',
        help='改写指定文本后退出 / Rewrite TEXT and exit'
    )
    mode_group.add_argument(
        '--test-platform',
        metavar='PLATFORM',
        help='测试平台连接 (feishu/dingtalk/wework) / Test a platform connection'
    )
    mode_group.add_argument(
        '--list-platforms',
        action='store_true',
        help='列出支持的平台 / List supported platforms'
    )

    rewrite_group = parser.add_argument_group('改写参数 Rewrite Options')
    rewrite_group.add_argument(
        '--model-config',
        metavar='NAME',
        help='已保存的模型配置名称 / Name of a saved model config'
    )
    rewrite_group.add_argument(
        '--prompt',
        help='改写提示词 / Rewrite prompt'
    )

    common_group = parser.add_argument_group('通用参数 Common Options')
    common_group.add_argument(
        '--config', '-c',
        default=None,
        help='配置文件路径（默认: 项目根目录下的 config.yaml）/ Config file path'
    )
    common_group.add_argument(
        '--env',
        default=None,
        help='.env文件路径 / .env file path'
    )
    common_group.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='启用详细日志 / Enable verbose logging'
    )

    return parser.parse_args(argv)


def resolve_cli_paths(args: argparse.Namespace) -> argparse.Namespace:
    """
    解析 --config/--env 路径（需在切换到项目根目录之前调用）

    用户给出的相对路径按当前工作目录解析；未指定 --config 时使用项目根目录下的 config.yaml。
    """
    if args.config:
        args.config = str(Path(args.config).resolve())
    else:
        args.config = str(project_root / 'config.yaml')
    if args.env:
        args.env = str(Path(args.env).resolve())
    return args


def load_app_config(args: argparse.Namespace, logger: logging.Logger) -> dict:
    """加载配置文件，不存在时使用默认配置"""
    try:
        config = load_config_with_defaults(args.config, args.env)
        logger.info(f"已加载配置文件: {args.config}")
        return config
    except FileNotFoundError:
        logger.warning(f"配置文件不存在: {args.config}，使用默认配置")
        return copy.deepcopy(DEFAULT_CONFIG)


def build_storage(config: dict) -> StorageService:
    """根据 storage 配置创建存储服务"""
    storage_config = get_storage_config(config)
    if storage_config['backend'] == 'memory':
        return StorageService(MemoryStore())
    return StorageService(JsonFileStore(storage_config['path']))


def run_serve_mode(config: dict, logger: logging.Logger) -> int:
    server = create_message_server(config, storage=build_storage(config))
    print(f"消息服务启动: http://{server.host}:{server.port}")
    print("按 Ctrl+C 停止服务")
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("收到中断信号，服务停止")
    return 0


def run_rewrite_mode(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    if not args.model_config:
        print("错误: --rewrite 需要同时指定 --model-config", file=sys.stderr)
        return 1

    storage = build_storage(config)
    model_config = storage.get_model_config(args.model_config)
    if model_config is None:
        print(f"错误: 模型配置不存在: {args.model_config}", file=sys.stderr)
        return 1

    model_settings = get_model_config(config)
    prompt = args.prompt or model_settings['default_prompt']
    result = ModelService(model_settings).rewrite_text(model_config, args.rewrite, prompt)

    if not result['success']:
        logger.error(f"改写失败: {result['error']}")
        print(f"错误: 改写失败: {result['error']}", file=sys.stderr)
        return 1

    print(result['data'])
    return 0


def run_test_platform_mode(config: dict, platform: str, logger: logging.Logger) -> int:
    if not adapter_factory.is_supported_platform(platform):
        print(f"错误: 不支持的平台: {platform}", file=sys.stderr)
        return 1

    platform_config = get_platform_config(config, platform.lower())
    validation = adapter_factory.validate_config(platform, platform_config)
    for warning in validation.warnings:
        print(f"⚠️  {warning}")
    if not validation.is_valid:
        for error in validation.errors:
            print(f"❌ {error}")
        return 1

    result = adapter_factory.test_adapter_connection(platform, platform_config)
    if result['success']:
        print(f"✓ {platform} 连接成功 ({result['duration']} ms)")
        return 0

    logger.error(f"{platform} 连接失败: {result.get('error')}")
    print(f"❌ {platform} 连接失败: {result.get('error')}")
    return 1


def run_list_platforms_mode() -> int:
    print(f"\n{'='*60}")
    print("支持的智能表格平台")
    print(f"{'='*60}")
    for platform in adapter_factory.get_supported_platforms():
        print(f"{platform.key:<10} {platform.name}")
        print(f"  必填: {', '.join(platform.required_fields)}")
        if platform.optional_fields:
            print(f"  可选: {', '.join(platform.optional_fields)}")
    print(f"{'='*60}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    主函数

    Returns:
        退出码：0表示成功，非0表示失败
    """
    args = resolve_cli_paths(parse_args(argv))

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    # 切换到项目根目录（确保相对路径正确）
    os.chdir(project_root)
    logger.debug(f"工作目录: {project_root}")

    if args.list_platforms:
        return run_list_platforms_mode()

    config = load_app_config(args, logger)

    if args.rewrite is not None:
        return run_rewrite_mode(config, args, logger)
    elif args.test_platform:
        return run_test_platform_mode(config, args.test_platform, logger)
    else:
        return run_serve_mode(config, logger)


if __name__ == '__main__':
    sys.exit(main())
