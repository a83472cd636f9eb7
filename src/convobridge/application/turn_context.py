"""Per-turn context handed to middleware and conversational logic."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import ChannelProtocol

if TYPE_CHECKING:
    from convobridge.application.protocol_adapter import DeliveryResult, ProtocolAdapter


class TurnContext:
    """One inbound activity plus the means to answer it.

    Replies are sent through the adapter of the protocol the activity
    arrived on; every delivery result is kept in ``deliveries``.
    """

    def __init__(self, adapter: "ProtocolAdapter", activity: Activity) -> None:
        self.adapter = adapter
        self.activity = activity
        self.deliveries: list[DeliveryResult] = []

    @property
    def protocol(self) -> ChannelProtocol:
        return self.adapter.protocol

    async def send_activity(self, reply: Activity | str) -> "DeliveryResult":
        """Send a reply into the conversation of the inbound activity.

        Args:
            reply: Reply text, or a partial Activity. Conversation, sender and
                channel are filled in from the inbound activity when missing.
        """
        if isinstance(reply, str):
            reply = Activity(text=reply)
        activity = replace(
            reply,
            conversation_id=reply.conversation_id or self.activity.conversation_id,
            sender_id=reply.sender_id or self.activity.sender_id,
            channel_id=reply.channel_id or self.activity.channel_id,
            reply_to_id=reply.reply_to_id or self.activity.id,
        )
        delivery = await self.adapter.send(activity)
        self.deliveries.append(delivery)
        return delivery
