"""
游戏逻辑模块

实现房间状态机、发牌/要牌/停牌、结算，以及房间/玩家目录和消息分发。
"""

from .errors import GameError
from .manager import RoomManager
from .room import GameRoom, determine_winner

__all__ = ["GameError", "GameRoom", "RoomManager", "determine_winner"]
