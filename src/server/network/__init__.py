"""
网络通信模块

处理 Socket 连接、消息收发与连接生命周期。

每个连接两个线程：会话线程内联运行读循环，把每一行交给消息处理函数；
写线程从有界发送队列取消息写出。发送永不阻塞调用方，队列写满即断开连接。
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

from src.shared.constants import (
	BUFFER_SIZE,
	DEFAULT_HOST,
	DEFAULT_PORT,
	MAX_LINE_SIZE,
	SEND_QUEUE_SIZE,
)
from src.shared.protocols import Message
from src.server.game import RoomManager

_CLOSE = None  # 写循环退出哨兵


class ClientConnection:
	"""客户端连接，封装套接字、发送队列与收发循环"""

	def __init__(
		self,
		conn: socket.socket,
		addr: Tuple[str, int],
		queue_size: int = SEND_QUEUE_SIZE,
		max_line_size: int = MAX_LINE_SIZE,
	):
		self.conn = conn
		self.addr = addr
		self.player_id: Optional[str] = None
		self._queue: "queue.Queue[Optional[Message]]" = queue.Queue(maxsize=queue_size)
		self._lock = threading.Lock()
		self._closed = False
		self._recv_buffer = bytearray()
		self._max_line_size = max_line_size

	@property
	def closed(self) -> bool:
		with self._lock:
			return self._closed

	def send(self, msg: Message) -> None:
		"""非阻塞发送：放入发送队列；队列已满则断开该连接"""
		with self._lock:
			if self._closed:
				return
			try:
				self._queue.put_nowait(msg)
				return
			except queue.Full:
				pass
		logger.warning(f"发送队列已满，断开慢连接: {self.addr} player={self.player_id}")
		self.close()

	def close(self) -> None:
		"""关闭连接（幂等，可在任意线程调用）"""
		with self._lock:
			if self._closed:
				return
			self._closed = True
		# // 唤醒写循环；队列满时写循环取到消息后也会看到 closed
		try:
			self._queue.put_nowait(_CLOSE)
		except queue.Full:
			pass
		# // 先 shutdown 让阻塞中的 recv/sendall 立即返回
		try:
			self.conn.shutdown(socket.SHUT_RDWR)
		except OSError:
			pass
		try:
			self.conn.close()
		except OSError:
			pass

	def write_loop(self) -> None:
		"""写循环：逐条取出队列消息写入套接字，写失败即关闭"""
		try:
			while True:
				msg = self._queue.get()
				if msg is _CLOSE or self.closed:
					break
				data = (msg.to_json() + "\n").encode("utf-8")
				self.conn.sendall(data)
		except OSError as e:
			logger.debug(f"写入错误: {self.addr}: {e}")
		finally:
			self.close()

	def read_loop(self, handler: Callable[["ClientConnection", bytes], Any]) -> None:
		"""读循环：按行（\n）读取消息并同步调用 handler，读失败即关闭"""
		try:
			while not self.closed:
				data = self.conn.recv(BUFFER_SIZE)
				if not data:
					break
				self._recv_buffer.extend(data)
				# // 简单分包：按换行符划分消息
				while True:
					try:
						idx = self._recv_buffer.index(ord("\n"))
					except ValueError:
						break
					raw = bytes(self._recv_buffer[:idx])
					del self._recv_buffer[: idx + 1]
					if raw.strip():
						handler(self, raw)
				if len(self._recv_buffer) > self._max_line_size:
					logger.warning(f"单行消息过长，断开连接: {self.addr} player={self.player_id}")
					break
		except OSError as e:
			logger.debug(f"读取错误: {self.addr}: {e}")
		finally:
			self.close()


class NetworkServer:
	"""网络服务器，负责接入连接并把消息交给房间管理器"""

	def __init__(
		self,
		host: str = DEFAULT_HOST,
		port: int = DEFAULT_PORT,
		manager: Optional[RoomManager] = None,
		send_queue_size: int = SEND_QUEUE_SIZE,
	):
		self.host = host
		self.port = port
		self.manager = manager or RoomManager()
		self.send_queue_size = send_queue_size
		self._sock: Optional[socket.socket] = None
		self._accept_thread: Optional[threading.Thread] = None
		self._running = threading.Event()
		self._lock = threading.Lock()
		self.connections: Dict[Tuple[str, int], ClientConnection] = {}

	@property
	def address(self) -> Tuple[str, int]:
		"""实际监听地址（端口为 0 时由系统分配）"""
		if self._sock is not None:
			return self._sock.getsockname()[:2]
		return (self.host, self.port)

	# 服务器生命周期
	def start(self) -> None:
		"""启动服务器并进入 Accept 循环"""
		self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		# // 允许快速重启服务
		self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self._sock.bind((self.host, self.port))
		self._sock.listen(32)
		self._running.set()
		self._accept_thread = threading.Thread(target=self._accept_loop, name="accept-loop", daemon=True)
		self._accept_thread.start()
		logger.info(f"监听地址: {self.address[0]}:{self.address[1]}")

	def stop(self) -> None:
		"""停止服务器并关闭所有连接"""
		self._running.clear()
		try:
			if self._sock:
				# // 触发 accept 退出
				try:
					self._sock.shutdown(socket.SHUT_RDWR)
				except OSError:
					pass
				self._sock.close()
		finally:
			self._sock = None
		with self._lock:
			clients = list(self.connections.values())
			self.connections.clear()
		for client in clients:
			client.close()

	# 接入与会话线程
	def _accept_loop(self) -> None:
		"""Accept 新连接并为其创建会话线程"""
		while self._running.is_set():
			try:
				conn, addr = self._sock.accept()  # type: ignore[union-attr]
			except OSError:
				# // 套接字已关闭或出错，退出循环
				break
			client = ClientConnection(conn, addr, queue_size=self.send_queue_size)
			with self._lock:
				self.connections[addr] = client
			logger.info(f"客户端连接: {addr}")
			t = threading.Thread(target=self._session_loop, args=(client,), daemon=True)
			t.start()

	def _session_loop(self, client: ClientConnection) -> None:
		"""单连接会话：启动写线程，本线程运行读循环"""
		writer = threading.Thread(target=client.write_loop, name=f"writer-{client.addr[1]}", daemon=True)
		writer.start()
		try:
			client.read_loop(self.manager.handle_raw)
		except Exception:
			logger.exception(f"会话异常: {client.addr}")
		finally:
			self._on_disconnect(client)

	# 断开清理
	def _on_disconnect(self, client: ClientConnection) -> None:
		client.close()
		with self._lock:
			self.connections.pop(client.addr, None)
		self.manager.on_disconnect(client)
		logger.info(f"客户端断开: {client.addr}")


__all__ = [
	"ClientConnection",
	"NetworkServer",
]
