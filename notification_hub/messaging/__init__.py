"""Broker producer and consumer"""

from .redis_broker import (
    BrokerClient,
    RedisBrokerClient,
    PublishResult,
    PROCESS_NOTIFICATION,
    NOTIFICATION_STATUS,
)
from .consumer import NotificationConsumer

__all__ = [
    'BrokerClient',
    'RedisBrokerClient',
    'PublishResult',
    'PROCESS_NOTIFICATION',
    'NOTIFICATION_STATUS',
    'NotificationConsumer',
]
