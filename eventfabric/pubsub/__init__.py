"""Pub/sub contracts, drivers and the driver registry."""

from .api import (
    PubSubApi,
    PublisherApi,
    SubscriberAgentBase,
    SubscriberApi,
    SubscriberState,
    UpdateCallback,
)
from .codec import decode_update, encode_update, pack, unpack
from .registry import DriverRegistry, get_configured_driver, get_pubsub_driver
from .update import Update

__all__ = [
    "DriverRegistry",
    "PubSubApi",
    "PublisherApi",
    "SubscriberAgentBase",
    "SubscriberApi",
    "SubscriberState",
    "Update",
    "UpdateCallback",
    "decode_update",
    "encode_update",
    "get_configured_driver",
    "get_pubsub_driver",
    "pack",
    "unpack",
]
