import logging
import re
from typing import Callable, Iterable
from uuid import UUID

from mention_agent.models import NormalizedEvent

log = logging.getLogger(__name__)


def mentions(text: str, terms: Iterable[str]) -> bool:
    """True if any term appears in text as a whole token (case-insensitive)."""
    for term in terms:
        term = (term or "").strip().lstrip("@")
        if not term:
            continue
        if re.search(r"(?<!\w)" + re.escape(term) + r"(?!\w)", text, re.IGNORECASE):
            return True
    return False


def should_respond(event: NormalizedEvent, actor_id: UUID, agent_id: UUID, state: dict,
                   classify: Callable[[dict], bool], mention_terms: Iterable[str]) -> bool:
    # cheapest checks first; the model is only asked when both pass
    if actor_id == agent_id:
        log.debug("[SKIP] message from self thread=%s", event.thread_id)
        return False

    if not mentions(event.full_text, mention_terms):
        log.debug("[SKIP] agent not mentioned thread=%s", event.thread_id)
        return False

    return bool(classify(state))
