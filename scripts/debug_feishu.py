#!/usr/bin/env python3
"""
飞书多维表格调试脚本
Feishu Bitable Debug Script

直接调用飞书开放平台接口：获取 tenant_access_token，然后列出多维表格中的数据表，
打印原始响应，便于排查权限和 token 问题。

使用方法 Usage:
    python scripts/debug_feishu.py

    # 指定配置文件
    python scripts/debug_feishu.py --config my_config.yaml
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import requests

# 将项目根目录添加到Python路径
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent
sys.path.insert(0, str(project_root))

from flowfocus.adapters.feishu_adapter import FeishuAdapter
from flowfocus.config import get_platform_config, load_config

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description='飞书多维表格调试工具')
    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config.yaml',
        help='配置文件路径 (默认: config.yaml)'
    )
    parser.add_argument(
        '--timeout',
        type=int,
        default=30,
        help='请求超时秒数 (默认: 30)'
    )
    return parser.parse_args()


def dump(title: str, response: requests.Response) -> dict:
    print(f"{title} (HTTP {response.status_code}):")
    try:
        data = response.json()
    except ValueError:
        print(response.text)
        return {}
    print(json.dumps(data, ensure_ascii=False, indent=2))
    return data


def fetch_token(base_url: str, app_id: str, app_secret: str, timeout: int) -> str | None:
    print("\n1. 测试获取访问令牌...")
    response = requests.post(
        f"{base_url}/auth/v3/tenant_access_token/internal",
        json={'app_id': app_id, 'app_secret': app_secret},
        timeout=timeout,
    )
    data = dump("访问令牌响应", response)

    if data.get('code') != 0:
        print(f"❌ 获取访问令牌失败: {data.get('msg')}")
        return None

    token = data['tenant_access_token']
    print(f"✅ 访问令牌获取成功: {token[:20]}...")
    return token


def list_tables(base_url: str, table_token: str, access_token: str, timeout: int) -> bool:
    print("\n2. 测试获取数据表列表...")
    response = requests.get(
        f"{base_url}/bitable/v1/apps/{table_token}/tables",
        headers={
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
        },
        timeout=timeout,
    )
    data = dump("数据表列表响应", response)

    if data.get('code') != 0:
        code = data.get('code')
        message = FeishuAdapter.ERROR_MESSAGES.get(code, data.get('msg'))
        print(f"❌ 获取数据表列表失败 ({code}): {message}")
        return False

    tables = (data.get('data') or {}).get('items') or []
    print(f"✅ 找到 {len(tables)} 个数据表:")
    for index, table in enumerate(tables, 1):
        print(f"  {index}. {table.get('name')} (ID: {table.get('table_id')})")
    return True


def main():
    args = parse_args()

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"❌ 加载配置失败: {e}")
        return 1

    feishu_config = get_platform_config(config, 'feishu')
    missing = [f for f in FeishuAdapter.REQUIRED_FIELDS if not feishu_config.get(f)]
    if missing:
        print(f"❌ 缺少飞书配置: {', '.join(missing)}")
        return 1

    base_url = (feishu_config.get('base_url') or FeishuAdapter.DEFAULT_BASE_URL).rstrip('/')
    logger.info(f"开始调试飞书API: app_id={str(feishu_config['app_id'])[:10]}...")

    try:
        token = fetch_token(base_url, feishu_config['app_id'], feishu_config['app_secret'], args.timeout)
        if token is None:
            return 1
        if not list_tables(base_url, feishu_config['table_token'], token, args.timeout):
            return 1
    except requests.RequestException as e:
        logger.error(f"网络错误: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
