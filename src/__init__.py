"""
Blackjack Rooms - 21 点多房间联机游戏

A multi-room blackjack game server with a line-delimited JSON protocol.
"""

__version__ = "0.1.0"
__author__ = "Blackjack Rooms Team"
__license__ = "MIT"

# 导出主要组件
from . import client, server, shared

__all__ = ["client", "server", "shared", "__version__"]
