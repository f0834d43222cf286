"""CLI 入口模块 -- python -m railyard.core <command>

支持的命令：
  rebuild-placements       从 movement_events 表重建车辆 placement
  regenerate-restrictions  重新生成所有限制的按日窗口
"""

import asyncio
import sys

from .config import get_db_path, load_engine_config
from .exceptions import RailyardError

_USAGE = """用法: python -m railyard.core <command>
命令:
  rebuild-placements       从 movement_events 表重建车辆 placement
  regenerate-restrictions  重新生成所有限制的按日窗口"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-placements":
        asyncio.run(rebuild_placements())
    elif command == "regenerate-restrictions":
        failed = asyncio.run(regenerate_restrictions())
        if failed:
            sys.exit(2)
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-placements, regenerate-restrictions")
        sys.exit(1)


async def rebuild_placements() -> None:
    """执行 placement Projection 重建"""
    from .projection import rebuild_placements as rebuild
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始重建 placement...")

    store_group = await create_store_group(db_path)

    try:
        event_count = await rebuild(
            store_group.conn,
            store_group.movement_store,
            store_group.track_store,
        )
        print(f"重建完成，处理 {event_count} 条事件")
    finally:
        await store_group.conn.close()


async def regenerate_restrictions() -> int:
    """重新展开所有限制，返回失败的限制数"""
    from .engine.restrictions import expand_restriction
    from .store import create_store_group

    config = load_engine_config()
    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print(f"运营时区: {config.timezone}")

    store_group = await create_store_group(db_path, config.collision_window_seconds, config.tz)

    processed = 0
    failed = 0
    try:
        restrictions = await store_group.restriction_store.list_restrictions()
        print(f"共 {len(restrictions)} 条限制")
        for restriction in restrictions:
            try:
                result = await expand_restriction(store_group, restriction, config=config)
            except RailyardError as e:
                failed += 1
                print(f"限制 {restriction.restriction_id} 展开失败: {e.message}")
                continue
            if result.success:
                processed += 1
                print(f"限制 {restriction.restriction_id}: 写入 {result.inserted_count} 条窗口")
            else:
                failed += 1
                print(f"限制 {restriction.restriction_id}: {result.error}")
    finally:
        await store_group.conn.close()

    print(f"完成: 成功 {processed}，失败 {failed}")
    return failed


if __name__ == "__main__":
    main()
