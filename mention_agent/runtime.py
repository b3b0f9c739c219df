"""
The agent runtime the webhook core depends on.

`AgentRuntime` is the capability bundle the orchestrator is handed at
construction: connection bookkeeping, the conversation memory store, state
composition, model calls and the action/evaluation hooks. `LocalRuntime` is
the in-process implementation used by the service entry point.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional
from uuid import UUID

from mention_agent.llm import OllamaClient, compose_context
from mention_agent.models import GeneratedContent, MemoryEntry

log = logging.getLogger(__name__)

ActionHandler = Callable[[MemoryEntry, List[MemoryEntry], dict], None]
Evaluator = Callable[[MemoryEntry, dict, bool], None]


class AgentRuntime(ABC):
    agent_id: UUID

    @abstractmethod
    def ensure_connection(self, user_id: UUID, room_id: UUID, user_name: Optional[str], source: str) -> None:
        ...

    @abstractmethod
    def create_memory(self, memory: MemoryEntry) -> bool:
        """Insert if no memory with the same id exists. Returns True when inserted."""

    @abstractmethod
    def compose_state(self, memory: MemoryEntry, extra: dict) -> dict:
        ...

    def compose_context(self, state: dict, template: str) -> str:
        return compose_context(state, template)

    @abstractmethod
    def generate_response(self, context: str) -> Optional[GeneratedContent]:
        ...

    @abstractmethod
    def classify(self, context: str) -> bool:
        ...

    def log_response(self, memory: MemoryEntry, context: str, response: GeneratedContent) -> None:
        log.debug("response for message=%s room=%s: %r", memory.id, memory.conversation_id, response.text)

    @abstractmethod
    def process_actions(self, memory: MemoryEntry, responses: List[MemoryEntry], state: dict,
                        action: str) -> None:
        ...

    @abstractmethod
    def evaluate(self, memory: MemoryEntry, state: dict, responded: bool) -> None:
        ...


class MemoryStore:
    """Append-only conversation memory keyed by message id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[UUID, MemoryEntry] = {}

    def insert_if_absent(self, entry: MemoryEntry) -> bool:
        with self._lock:
            if entry.id in self._entries:
                return False
            self._entries[entry.id] = entry
            return True

    def get(self, message_id: UUID) -> Optional[MemoryEntry]:
        with self._lock:
            return self._entries.get(message_id)

    def recent(self, conversation_id: UUID, limit: int = 20) -> List[MemoryEntry]:
        with self._lock:
            rows = [e for e in self._entries.values() if e.conversation_id == conversation_id]
        rows.sort(key=lambda e: e.created_at)
        return rows[-limit:]

    def __len__(self):
        with self._lock:
            return len(self._entries)


class LocalRuntime(AgentRuntime):
    def __init__(self, agent_id: UUID, llm: OllamaClient, store: Optional[MemoryStore] = None,
                 max_context_messages: int = 20):
        self.agent_id = agent_id
        self.llm = llm
        self.store = store or MemoryStore()
        self.max_context_messages = max_context_messages
        self._lock = threading.Lock()
        self._names: Dict[UUID, str] = {}
        self._rooms: Dict[UUID, set] = {}
        self._actions: Dict[str, ActionHandler] = {}
        self._evaluators: List[Evaluator] = []
        self.response_log: List[dict] = []

    # ---------- hooks ----------
    def register_action(self, name: str, handler: ActionHandler) -> None:
        self._actions[name.upper()] = handler

    def register_evaluator(self, evaluator: Evaluator) -> None:
        self._evaluators.append(evaluator)

    # ---------- runtime ----------
    def ensure_connection(self, user_id, room_id, user_name, source):
        with self._lock:
            if user_name:
                self._names.setdefault(user_id, user_name)
            self._rooms.setdefault(room_id, set()).add(user_id)
        log.debug("connection user=%s room=%s source=%s", user_id, room_id, source)

    def create_memory(self, memory):
        inserted = self.store.insert_if_absent(memory)
        if not inserted:
            log.debug("memory %s already recorded", memory.id)
        return inserted

    def compose_state(self, memory, extra):
        lines = []
        for m in self.store.recent(memory.conversation_id, self.max_context_messages):
            lines.append(f"{self._display_name(m.actor_id, extra)}: {m.text}")
        state = {
            "agent_id": str(self.agent_id),
            "room_id": str(memory.conversation_id),
            "sender_name": self._display_name(memory.actor_id, extra),
            "message_text": memory.text,
            "recent_messages": "\n".join(lines),
        }
        state.update(extra)
        return state

    def _display_name(self, actor_id, extra):
        if actor_id == self.agent_id:
            return extra.get("agent_name") or "agent"
        return self._names.get(actor_id, "user")

    def generate_response(self, context):
        return self.llm.generate_response(context)

    def classify(self, context):
        return self.llm.classify(context)

    def log_response(self, memory, context, response):
        super().log_response(memory, context, response)
        self.response_log.append({
            "memory_id": str(memory.id),
            "room_id": str(memory.conversation_id),
            "user_id": str(memory.actor_id),
            "context": context,
            "response": response.text,
            "action": response.action,
        })

    def process_actions(self, memory, responses, state, action):
        handler = self._actions.get(action.upper())
        if handler is None:
            log.warning("[WARN] no handler registered for action %s", action)
            return
        handler(memory, responses, state)

    def evaluate(self, memory, state, responded):
        for evaluator in self._evaluators:
            evaluator(memory, state, responded)
