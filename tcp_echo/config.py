# Sizes follow the embedded stack defaults so behaviour under load matches the board.
TCP_MSS = 536
TCP_SND_BUF = 2 * TCP_MSS
TCP_WND = 4 * TCP_MSS
TCP_SLOW_INTERVAL = 0.5  # seconds per slow tick

TCP_PORT = 7  # echo port
TCP_SERVER_BUF_SIZE = 256
SERVER_POLL_TICKS = 2  # approx 1 second

SERVER_IP = "192.168.1.225"
SERVER_PORT = 5000
GREETING = b"Hello STM32 LwIP Client!\n"


class Config:

    def __init__(
            self,
            host=None,
            port=TCP_PORT,
            buffer_size=TCP_SERVER_BUF_SIZE,
            poll_interval=SERVER_POLL_TICKS * TCP_SLOW_INTERVAL,
            backlog=5,
            max_sessions=1,
            snd_buf=TCP_SND_BUF,
            window=TCP_WND,
            timeout_graceful_shutdown=5.0,
    ):
        self.host = host
        self.port = port
        self.buffer_size = buffer_size
        self.poll_interval = poll_interval
        self.backlog = backlog
        self.max_sessions = max_sessions
        self.snd_buf = snd_buf
        self.window = window
        self.timeout_graceful_shutdown = timeout_graceful_shutdown


class ClientConfig:

    def __init__(
            self,
            host=SERVER_IP,
            port=SERVER_PORT,
            greeting=GREETING,
            connect_timeout=None,
            snd_buf=TCP_SND_BUF,
            window=TCP_WND,
    ):
        self.host = host
        self.port = port
        self.greeting = greeting
        self.connect_timeout = connect_timeout
        self.snd_buf = snd_buf
        self.window = window
