"""RabbitMQ consumer lifecycle states."""
from enum import Enum


class ConsumerState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    CHANNEL_OPEN = "CHANNEL_OPEN"
    QUEUE_BOUND = "QUEUE_BOUND"
    CONSUMING = "CONSUMING"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
