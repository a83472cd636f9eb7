"""Test configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.push_events import PushNotification

AGENT_ID = "le12345.agent-1"


class FakeTransport:
    """In-memory push transport recording every request.

    ``failures`` maps a method name to the exception that method raises.
    ``profiles`` maps a consumer id to the profile records it returns.
    """

    def __init__(self, agent_id: str = AGENT_ID) -> None:
        self._agent_id = agent_id
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.profiles: dict[str, list[dict[str, Any]]] = {}
        self.connected = False
        self.closed_count = 0
        self._queue: asyncio.Queue[PushNotification | None] = asyncio.Queue()

    @property
    def agent_id(self) -> str:
        return self._agent_id

    def calls_to(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    def push(self, notification: PushNotification) -> None:
        self._queue.put_nowait(notification)

    def finish(self) -> None:
        self._queue.put_nowait(None)

    async def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    async def connect(self) -> None:
        await self._record("connect")
        self.connected = True

    async def close(self) -> None:
        await self._record("close")
        self.closed_count += 1
        self.connected = False
        self.finish()

    async def notifications(self) -> AsyncIterator[PushNotification]:
        while True:
            notification = await self._queue.get()
            if notification is None:
                return
            yield notification

    async def publish_event(self, dialog_id: str, event: dict[str, Any]) -> dict[str, Any]:
        await self._record("publish_event", dialog_id, event)
        self.published.append((dialog_id, event))
        return {"sequence": len(self.published)}

    async def set_agent_state(self, availability: str) -> dict[str, Any]:
        await self._record("set_agent_state", availability)
        return {}

    async def subscribe_ex_conversations(
        self,
        *,
        agent_ids: list[str],
        conversation_states: list[str],
    ) -> dict[str, Any]:
        await self._record(
            "subscribe_ex_conversations",
            agent_ids=agent_ids,
            conversation_states=conversation_states,
        )
        return {"subscriptionId": "sub-1"}

    async def subscribe_routing_tasks(self) -> dict[str, Any]:
        await self._record("subscribe_routing_tasks")
        return {}

    async def update_ring_state(self, ring_id: str, ring_state: str) -> dict[str, Any]:
        await self._record("update_ring_state", ring_id, ring_state)
        return {}

    async def subscribe_messaging_events(self, dialog_id: str) -> dict[str, Any]:
        await self._record("subscribe_messaging_events", dialog_id)
        return {}

    async def get_user_profile(self, user_id: str) -> list[dict[str, Any]]:
        await self._record("get_user_profile", user_id)
        return self.profiles.get(user_id, [])

    async def get_clock(self) -> dict[str, Any]:
        await self._record("get_clock")
        return {"currentTime": 0}

    async def update_conversation_field(
        self,
        conversation_id: str,
        fields: list[dict[str, Any]],
    ) -> dict[str, Any]:
        await self._record("update_conversation_field", conversation_id, fields)
        return {}


class RecordingListener:
    """Collects every Activity the registry emits."""

    def __init__(self) -> None:
        self.activities: list[Activity] = []

    async def __call__(self, activity: Activity) -> None:
        self.activities.append(activity)


class PushPayloads:
    """Builds notification bodies as the push backend sends them to one agent."""

    def __init__(self, agent_id: str = AGENT_ID) -> None:
        self.agent_id = agent_id

    def conversation_upsert(self, conversation_id: str, consumer_id: str = "consumer-1") -> dict[str, Any]:
        return {
            "changes": [
                {
                    "type": "UPSERT",
                    "result": {
                        "convId": conversation_id,
                        "conversationDetails": {
                            "participants": [
                                {"id": consumer_id, "role": "CONSUMER"},
                                {"id": self.agent_id, "role": "ASSIGNED_AGENT"},
                            ]
                        },
                    },
                }
            ]
        }

    def conversation_delete(self, conversation_id: str) -> dict[str, Any]:
        return {"changes": [{"type": "DELETE", "result": {"convId": conversation_id}}]}

    def consumer_message(
        self,
        conversation_id: str,
        sequence: int,
        message: str,
        consumer_id: str = "consumer-1",
    ) -> dict[str, Any]:
        return {
            "dialogId": conversation_id,
            "changes": [
                {
                    "sequence": sequence,
                    "originatorId": consumer_id,
                    "event": {"type": "ContentEvent", "contentType": "text/plain", "message": message},
                }
            ],
        }

    def accept_status(
        self,
        conversation_id: str,
        sequences: list[int],
        originator: str | None = None,
    ) -> dict[str, Any]:
        return {
            "dialogId": conversation_id,
            "changes": [
                {
                    "sequence": 99,
                    "originatorId": originator or self.agent_id,
                    "event": {"type": "AcceptStatusEvent", "status": "READ", "sequenceList": sequences},
                }
            ],
        }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def registry(transport: FakeTransport, listener: RecordingListener) -> ConversationRegistry:
    return ConversationRegistry(transport=transport, listener=listener, greeting=None)


@pytest.fixture
def payloads(transport: FakeTransport) -> PushPayloads:
    return PushPayloads(transport.agent_id)

