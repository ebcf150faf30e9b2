"""
常量定义

定义服务器、客户端共用的各种常量。
"""

# 网络配置
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
BUFFER_SIZE = 4096
# 单行消息上限，超过即断开连接
MAX_LINE_SIZE = 64 * 1024

# 每个连接的发送队列容量，队列写满即断开该连接（慢消费者）
SEND_QUEUE_SIZE = 256

# 游戏配置
MAX_PLAYERS = 6
MIN_PLAYERS = 1
BLACKJACK = 21
INITIAL_CARDS = 2

# 房间号范围（5 位数字）
ROOM_ID_MIN = 10000
ROOM_ID_SPAN = 90000

# 牌面
SUITS = ["club", "diamond", "heart", "spade"]
RANKS = list(range(1, 14))
CARD_PREFIX = "pk-"
HIDDEN_CARD = "pk-hide"

# 房间状态
ROOM_WAITING = "waiting"
ROOM_PLAYING = "playing"
ROOM_ENDED = "ended"

# 玩家状态
PLAYER_WAITING = "waiting"
PLAYER_ACTING = "acting"
PLAYER_STOOD = "stood"
PLAYER_BUST = "bust"

PLAYER_STATUS_TEXT = {
    PLAYER_WAITING: "等待中",
    PLAYER_ACTING: "操作中",
    PLAYER_STOOD: "已停牌",
    PLAYER_BUST: "已爆牌",
}

PLAYER_STATUS_COLOR = {
    PLAYER_WAITING: "gray",
    PLAYER_ACTING: "yellow",
    PLAYER_STOOD: "green",
    PLAYER_BUST: "red",
}

# 消息类型
MSG_CONNECT = "connect"
MSG_JOIN = "join"
MSG_LEAVE = "leave"
MSG_START = "start"
MSG_HIT = "hit"
MSG_STAND = "stand"
MSG_CHAT = "chat"
MSG_UPDATE = "update"
MSG_ERROR = "error"
MSG_ROOM_INFO = "roomInfo"
MSG_PLAYERS = "players"
MSG_GAME_END = "gameEnd"
MSG_CREATE_ROOM = "createRoom"
MSG_QUERY_ROOM = "queryRoom"
