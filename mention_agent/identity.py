"""
Deterministic conversation/actor/message ids.

Ids are uuid5 values over stable strings scoped to the agent, so the same
thread, author or message always maps to the same id across redeliveries and
restarts, and the memory store can treat inserts as idempotent.
"""

from uuid import UUID, uuid5

from mention_agent.models import IdentityTriple, PublishedReply, RawEvent

NAMESPACE = UUID("6f1c2a52-3d8e-5b7a-9c40-1e2d3f4a5b6c")


def stable_uuid(key: str) -> UUID:
    return uuid5(NAMESPACE, key)


class IdentityResolver:
    def __init__(self, agent_id: UUID, self_user_id: int):
        self.agent_id = agent_id
        self.self_user_id = self_user_id

    def conversation_id(self, community_id: str, thread_id: int) -> UUID:
        return stable_uuid(f"{community_id}-{thread_id}-{self.agent_id}")

    def actor_id(self, user_id: int) -> UUID:
        # our own posts belong to the canonical agent actor, not a derived one
        if user_id == self.self_user_id:
            return self.agent_id
        return stable_uuid(f"{user_id}-{self.agent_id}")

    def for_event(self, event: RawEvent) -> IdentityTriple:
        object_id = event.comment_id if event.comment_id is not None else event.thread_id
        return IdentityTriple(
            conversation_id=self.conversation_id(event.community_id, event.thread_id),
            actor_id=self.actor_id(event.author_user_id),
            message_id=stable_uuid(f"{event.content_type}-{object_id}-{self.agent_id}"),
        )

    def for_reply(self, reply: PublishedReply) -> IdentityTriple:
        return IdentityTriple(
            conversation_id=self.conversation_id(reply.community_id, reply.thread_id),
            actor_id=self.agent_id,
            message_id=stable_uuid(f"comment-{reply.id}-{self.agent_id}"),
        )
