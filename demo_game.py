#!/usr/bin/env python3
"""
联机对局演示脚本

模拟两个客户端连接到已启动的服务器：建房、加入、开局、停牌，
并打印收到的结算结果。

用法：先运行 blackjack-server（或 python src/server/main.py），再运行本脚本。
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from src.client.network import NetworkClient  # noqa: E402
from src.shared.constants import DEFAULT_HOST, DEFAULT_PORT  # noqa: E402


def demo_game(host: str, port: int) -> bool:
    """两位玩家打一局"""
    print("=" * 50)
    print("21 点联机演示")
    print("=" * 50)

    alice = NetworkClient(host=host, port=port)
    bob = NetworkClient(host=host, port=port)

    try:
        if not alice.connect("Alice", "demo_alice") or not bob.connect("Bob", "demo_bob"):
            print("连接失败!")
            return False

        alice.create_room()
        created = alice.wait_for("createRoom")
        if created is None:
            print("创建房间超时!")
            return False
        room_id = created.data["roomId"]
        print(f"[Alice] 创建房间 {room_id}")

        alice.join_room(room_id)
        alice.wait_for("roomInfo")
        bob.join_room(room_id)
        bob.wait_for("roomInfo")
        print("[Alice][Bob] 已加入房间")

        alice.start_game()
        start = alice.wait_for("start")
        if start is None:
            print("开局失败!")
            return False

        players = alice.wait_for("players")
        if players is not None:
            for p in players.data["players"]:
                print(f"  {p['nickname']}: {' '.join(p['cards'])} ({p['statusText']})")

        for client in (alice, bob):
            client.stand()

        end = alice.wait_for("gameEnd")
        if end is None:
            print("没有收到结算结果!")
            return False

        print("\n结算:")
        for r in end.data["results"]:
            mark = "  <- 获胜" if r["isWinner"] else ""
            print(f"  {r['nickname']}: {r['score']} 点 {' '.join(r['cards'])}{mark}")

        alice.leave_room()
        bob.leave_room()
        return True
    finally:
        alice.close()
        bob.close()
        print("\n[完成] 已关闭连接")


if __name__ == "__main__":
    host = os.environ.get("HOST", DEFAULT_HOST)
    port = int(os.environ.get("PORT", DEFAULT_PORT))
    sys.exit(0 if demo_game(host, port) else 1)
