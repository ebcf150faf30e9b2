"""
客户端模块

不带界面的协议客户端，供脚本与端到端测试使用。

模块组成：
- network: 连接服务器、发送 connect/join/start/hit/stand/chat 等消息，
  接收到的消息放入事件队列

提示：
- 与服务器通信基于行分隔 JSON（Message.to_json() + "\n"）
"""

from . import network

__all__ = ["network"]
