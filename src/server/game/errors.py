"""
游戏前置条件错误

异常消息即回复给客户端的错误文本，由消息分发层统一转成 error 消息。
"""


class GameError(Exception):
    """房间/牌局操作的前置条件不满足，状态未被修改"""


class RoomNotFoundError(GameError):
    def __init__(self, msg: str = "房间不存在"):
        super().__init__(msg)


class PlayerNotFoundError(GameError):
    def __init__(self, msg: str = "玩家不存在"):
        super().__init__(msg)


class RoomFullError(GameError):
    def __init__(self, msg: str = "无法加入房间（玩家已存在或房间已满）"):
        super().__init__(msg)


class PlayerInOtherRoomError(GameError):
    def __init__(self, msg: str = "玩家已在其他房间中"):
        super().__init__(msg)


class InvalidPhaseError(GameError):
    """房间不在所需的阶段"""


class NotEnoughPlayersError(GameError):
    def __init__(self, msg: str = "至少需要1个玩家"):
        super().__init__(msg)


class ActionNotAllowedError(GameError):
    """玩家当前状态不允许该操作"""


__all__ = [
    "GameError",
    "RoomNotFoundError",
    "PlayerNotFoundError",
    "RoomFullError",
    "PlayerInOtherRoomError",
    "InvalidPhaseError",
    "NotEnoughPlayersError",
    "ActionNotAllowedError",
]
