"""Broadcast fanout of normalized events to connected observers."""

from wastetrack.broadcast.fanout import BroadcastFanout, Observer, SubscriptionHandle

__all__ = ["BroadcastFanout", "Observer", "SubscriptionHandle"]
