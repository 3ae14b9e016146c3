#!/usr/bin/env python3
"""
飞书配置验证脚本
Feishu Config Validation Script

离线检查飞书多维表格配置的格式，并输出常见问题排查建议。
不发送任何网络请求，联调请使用 scripts/debug_feishu.py。

使用方法 Usage:
    python scripts/validate_feishu_config.py

    # 指定配置文件
    python scripts/validate_feishu_config.py --config my_config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

# 将项目根目录添加到Python路径
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

from flowfocus.adapters import validate_config
from flowfocus.adapters.feishu_adapter import FeishuAdapter
from flowfocus.config import get_platform_config, load_config

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description='飞书配置验证工具')
    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config.yaml',
        help='配置文件路径 (默认: config.yaml)'
    )
    return parser.parse_args()


def check_formats(feishu_config: dict) -> int:
    """逐项检查字段格式，返回错误数"""
    problems = 0
    app_id = str(feishu_config.get('app_id') or '')
    app_secret = str(feishu_config.get('app_secret') or '')
    table_token = str(feishu_config.get('table_token') or '')

    print("1. App ID 格式验证:")
    if app_id.startswith('cli_') and len(app_id) > 10:
        print("   ✅ App ID 格式正确")
    else:
        print("   ❌ App ID 格式错误")
        problems += 1

    print("2. App Secret 格式验证:")
    if len(app_secret) >= 32:
        print("   ✅ App Secret 格式正确")
    else:
        print("   ❌ App Secret 格式错误")
        problems += 1

    print("3. Table Token 格式验证:")
    if len(table_token) >= 20:
        print("   ✅ Table Token 格式正确")
        if not table_token.startswith(('bascn', 'tbl')):
            print("   ⚠️  token格式不常见，请确认是否正确")
    else:
        print("   ❌ Table Token 格式错误")
        problems += 1

    return problems


def print_troubleshooting(feishu_config: dict) -> None:
    base_url = feishu_config.get('base_url') or FeishuAdapter.DEFAULT_BASE_URL
    print(f"\n{'='*60}")
    print("常见问题排查")
    print(f"{'='*60}")
    print("1. 确保飞书应用已开启以下权限:")
    print("   - 获取 tenant_access_token")
    print("   - 多维表格: 读取表格信息、读取和编辑记录")
    print("2. 开发中的应用需要先发布版本才能调用 API")
    print("3. 表格 token 在多维表格 URL 中，格式通常为 bascnxxxxxxxxxxxxxxxx")
    print("4. HTTP 400 通常表示访问令牌无效、权限不足或资源不存在")
    print("")
    print("API测试URL（需要添加 Authorization: Bearer <access_token> 请求头）:")
    print(f"GET {base_url}/bitable/v1/apps/{feishu_config.get('table_token', '')}/tables")


def main():
    args = parse_args()

    print(f"\n{'='*60}")
    print("飞书配置验证")
    print(f"{'='*60}\n")

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"❌ 加载配置失败: {e}")
        return 1

    feishu_config = get_platform_config(config, 'feishu')
    result = validate_config('feishu', feishu_config)

    for error in result.errors:
        print(f"❌ {error}")
    for warning in result.warnings:
        print(f"⚠️  {warning}")
    if not result.is_valid:
        print("\n请在 .env 文件中设置 FEISHU_APP_ID、FEISHU_APP_SECRET、FEISHU_TABLE_TOKEN")
        return 1

    app_id = str(feishu_config['app_id'])
    logger.info(f"验证飞书应用: {app_id[:10]}...")

    problems = check_formats(feishu_config)
    print_troubleshooting(feishu_config)

    return 1 if problems else 0


if __name__ == '__main__':
    sys.exit(main())
