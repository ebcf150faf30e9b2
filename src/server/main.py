"""
服务器主程序入口

启动 21 点游戏服务器，监听客户端连接。
"""

import logging
import os
import sys
import time
from pathlib import Path

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.shared.constants import DEFAULT_HOST, DEFAULT_PORT, SEND_QUEUE_SIZE  # noqa: E402

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """配置日志：同时输出到 server.log 与终端，级别由 LOG_LEVEL 控制"""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler("server.log"), logging.StreamHandler()],
    )


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        logger.warning(f"环境变量 {name} 不是整数，使用默认值 {default}")
        return default


def main():
    """启动服务器主函数"""
    setup_logging()

    # 支持通过环境变量覆盖主机、端口与发送队列容量
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = _env_int("PORT", DEFAULT_PORT)
    queue_size = _env_int("SEND_QUEUE_SIZE", SEND_QUEUE_SIZE)

    logger.info("=" * 50)
    logger.info("21 点游戏服务器启动中...")
    logger.info("=" * 50)

    server = None
    try:
        from src.server.game import RoomManager
        from src.server.network import NetworkServer

        manager = RoomManager()
        server = NetworkServer(host, port, manager=manager, send_queue_size=queue_size)
        server.start()

        logger.info("服务器运行中，按 Ctrl+C 停止")

        # 保持服务器运行
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("服务器正在关闭...")
    except Exception as e:
        logger.error(f"服务器错误: {e}", exc_info=True)
    finally:
        if server is not None:
            server.stop()
        logger.info("服务器已停止")


if __name__ == "__main__":
    main()
