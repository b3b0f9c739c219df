"""
Turns a verified mention event into (at most) one published reply.

Stages, in order:

    VERIFIED -> NORMALIZED -> MEMORY_RECORDED -> DECIDED
        -> SKIPPED
        -> GENERATING -> GENERATED -> PUBLISHED -> REPLY_RECORDED -> EFFECTED

The inbound memory is written before any decision so skipped mentions still
show up as context later. Publishing is attempted exactly once per delivery;
a failure propagates to the caller and is never retried here.
"""

import logging
from enum import Enum

from mention_agent.decision import should_respond
from mention_agent.identity import IdentityResolver
from mention_agent.llm import MESSAGE_HANDLER_TEMPLATE, SHOULD_RESPOND_TEMPLATE
from mention_agent.models import MemoryEntry, NormalizedEvent, RawEvent, SelfIdentity, now_ms
from mention_agent.normalizer import normalize

log = logging.getLogger(__name__)

SOURCE = "common"


class Stage(Enum):
    VERIFIED = "verified"
    NORMALIZED = "normalized"
    MEMORY_RECORDED = "memory_recorded"
    DECIDED = "decided"
    SKIPPED = "skipped"
    GENERATING = "generating"
    GENERATED = "generated"
    PUBLISHED = "published"
    REPLY_RECORDED = "reply_recorded"
    EFFECTED = "effected"


class Outcome(Enum):
    SKIPPED = "skipped"
    NO_REPLY = "no_reply"
    RESPONDED = "responded"


class ResponseOrchestrator:
    def __init__(self, runtime, api, me: SelfIdentity, fetch_session=None, fetch_timeout: float = 30,
                 should_respond_template: str = SHOULD_RESPOND_TEMPLATE,
                 message_template: str = MESSAGE_HANDLER_TEMPLATE):
        self.runtime = runtime
        self.api = api
        self.me = me
        self.identity = IdentityResolver(runtime.agent_id, me.id)
        self.fetch_session = fetch_session
        self.fetch_timeout = fetch_timeout
        self.should_respond_template = should_respond_template
        self.message_template = message_template

    @property
    def mention_terms(self):
        return [str(self.me.id), self.me.display_name]

    def _enter(self, stage: Stage, event: RawEvent):
        object_id = event.comment_id if event.comment_id is not None else event.thread_id
        log.debug("event %s/%s thread=%s -> %s", event.content_type, object_id, event.thread_id, stage.value)

    def _classify(self, state: dict) -> bool:
        return self.runtime.classify(self.runtime.compose_context(state, self.should_respond_template))

    def process(self, event: RawEvent) -> Outcome:
        """Entry point for a delivery whose signature has already been checked."""
        self._enter(Stage.VERIFIED, event)
        return self.handle(normalize(event, self.fetch_session, self.fetch_timeout))

    def handle(self, event: NormalizedEvent) -> Outcome:
        self._enter(Stage.NORMALIZED, event)
        ids = self.identity.for_event(event)

        self.runtime.ensure_connection(ids.actor_id, ids.conversation_id, event.profile_name, SOURCE)
        memory = MemoryEntry(
            id=ids.message_id,
            conversation_id=ids.conversation_id,
            actor_id=ids.actor_id,
            agent_id=self.runtime.agent_id,
            text=event.full_text,
            source=SOURCE,
            created_at=now_ms(),
            url=event.object_url,
        )
        self.runtime.create_memory(memory)
        self._enter(Stage.MEMORY_RECORDED, event)

        state = self.runtime.compose_state(memory, {
            "agent_name": self.me.display_name,
            "thread_title": event.thread_title,
            "sender_name": event.profile_name,
            "common_message": event,
        })
        respond = should_respond(event, ids.actor_id, self.runtime.agent_id, state,
                                 self._classify, self.mention_terms)
        self._enter(Stage.DECIDED, event)

        if not respond:
            log.info("[OK] not responding thread=%s author=%s", event.thread_id, event.author_user_id)
            self.runtime.evaluate(memory, state, False)
            self._enter(Stage.SKIPPED, event)
            return Outcome.SKIPPED

        self._enter(Stage.GENERATING, event)
        context = self.runtime.compose_context(state, self.message_template)
        response = self.runtime.generate_response(context)
        if response is None or not response.text.strip():
            log.error("[ERR] no response from the model for thread=%s, nothing posted", event.thread_id)
            return Outcome.NO_REPLY
        self.runtime.log_response(memory, context, response)
        self._enter(Stage.GENERATED, event)

        # the inbound message id doubles as the publish dedup token
        reply = self.api.post_reply(event.thread_id, response.text, parent_id=event.comment_id,
                                    idempotency_key=str(ids.message_id))
        self._enter(Stage.PUBLISHED, event)
        log.info("[OK] replied thread=%s parent=%s reply=%s", event.thread_id, event.comment_id, reply.id)

        reply_ids = self.identity.for_reply(reply)
        reply_memory = MemoryEntry(
            id=reply_ids.message_id,
            conversation_id=reply_ids.conversation_id,
            actor_id=reply_ids.actor_id,
            agent_id=self.runtime.agent_id,
            text=reply.body,
            source=SOURCE,
            created_at=reply.created_at_ms(),
            content_url=reply.content_url,
        )
        self.runtime.create_memory(reply_memory)
        self._enter(Stage.REPLY_RECORDED, event)

        if response.action:
            self.runtime.process_actions(memory, [reply_memory], state, response.action)
        self.runtime.evaluate(memory, state, True)
        self._enter(Stage.EFFECTED, event)
        return Outcome.RESPONDED
