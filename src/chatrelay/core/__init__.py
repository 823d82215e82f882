"""
Core module for chatrelay

Contains the bridge channel pair, the producer and consumer paths,
message chunking, configuration management and logging.
"""

from .bridge import Bridge, ClientSide, PluginSide, DeliveryMode, link_bridges
from .channel import (
    unbounded, Sender, Receiver,
    ChannelClosedError, SendError, RecvError, ChannelEmpty
)
from .chunker import chunk_message, split_utf8, MAX_CHAT_BYTES
from .consumer import ConsumerLoop
from .directory import IdentityDirectory
from .filters import IgnoreList, is_ignored, DuplicateFilter
from .producer import ProducerPath
from .scheduler import BridgeScheduler

__all__ = [
    'Bridge',
    'ClientSide',
    'PluginSide',
    'DeliveryMode',
    'link_bridges',
    'unbounded',
    'Sender',
    'Receiver',
    'ChannelClosedError',
    'SendError',
    'RecvError',
    'ChannelEmpty',
    'chunk_message',
    'split_utf8',
    'MAX_CHAT_BYTES',
    'ConsumerLoop',
    'IdentityDirectory',
    'IgnoreList',
    'is_ignored',
    'DuplicateFilter',
    'ProducerPath',
    'BridgeScheduler'
]
