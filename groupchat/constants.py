# groupchat protocol constants

# Wire message prefixes. Both are exactly PREFIX_LEN characters.
PREFIX_NAME = "name"
PREFIX_EXIT = "exit"
PREFIX_LEN = 4

# Message kinds returned by envelope.classify()
KIND_NAME = "name"
KIND_EXIT = "exit"
KIND_CHAT = "chat"

# Broadcast notice formats
JOIN_NOTICE_FMT = "{name} has joined the chat"
LEAVE_NOTICE_FMT = "{name} has left the chat"

# Local console command (server and terminal client)
EXIT_COMMAND = "EXIT"

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 14001
DEFAULT_BACKLOG = 50
DEFAULT_SEND_TIMEOUT = 5.0

# Frame header is an unsigned 16-bit big-endian length.
FRAME_HEADER_BYTES = 2
MAX_FRAME_BYTES = 0xFFFF
