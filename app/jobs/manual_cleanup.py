"""过期预占清理本地执行脚本

    python -m app.jobs.manual_cleanup [--dry-run] [--batch-size N]
"""

import argparse
import logging
import sys

from app.core.config import settings
from app.core.container import ServiceContainer
from app.services.inventory_service import InventoryService

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def run_cleanup(container: ServiceContainer, batch_size: int = 500, dry_run: bool = False) -> int:
    """执行过期预占清理

    Args:
        container: 已打开的资源容器
        batch_size: 单次最多处理的条数
        dry_run: 是否为试运行模式（只统计，不修改）
    """
    db = container.session()
    try:
        service = InventoryService(db, cache=container.stock_cache)
        if dry_run:
            expired_count = service.count_expired()
            logger.info(f"试运行模式：发现 {expired_count} 条过期预占记录待清理")
            return expired_count

        result = service.release_expired(limit=batch_size)
        logger.info(f"清理完成：成功清理 {result['expired_count']} 条过期预占记录")
        return result["expired_count"]
    except Exception as e:
        logger.error(f"清理执行失败: {str(e)}")
        raise
    finally:
        db.close()


def main(argv=None) -> int:
    """主函数"""
    parser = argparse.ArgumentParser(description='库存过期预占清理工具')
    parser.add_argument(
        '--batch-size',
        type=int,
        default=settings.SWEEP_BATCH_SIZE,
        help=f'批处理大小 (默认: {settings.SWEEP_BATCH_SIZE})'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='试运行模式，只统计不执行清理'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.batch_size <= 0:
        parser.error('--batch-size 必须大于 0')

    container = ServiceContainer(settings)
    try:
        container.open(create_tables=False)
        result = run_cleanup(container, args.batch_size, args.dry_run)
        if args.dry_run:
            print(f"📊 试运行结果：发现 {result} 条过期记录")
        else:
            print(f"✅ 清理完成：处理了 {result} 条记录")
    except Exception as e:
        print(f"❌ 执行失败: {str(e)}")
        return 1
    finally:
        container.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
