"""
服务器端模块

负责处理客户端连接、房间管理、牌局逻辑等服务器功能。

模块组成：
- models: 扑克牌/牌组/计分与玩家记录
- game: 房间状态机、房间管理器与消息分发
- network: TCP 连接（发送队列 + 收发循环）与服务器接入

使用方式：
- 入口参见 src/server/main.py，创建 RoomManager 并交给 NetworkServer
"""

from . import game, models, network

__all__ = ["game", "models", "network"]
