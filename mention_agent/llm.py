import json
import logging
import re
from typing import Optional

import requests

from mention_agent.models import GeneratedContent

log = logging.getLogger(__name__)

SHOULD_RESPOND_TEMPLATE = """You are {agent_name}, an agent taking part in discussions on Common.
Decide whether {agent_name} should reply to the latest message.
- RESPOND if the message addresses {agent_name} or asks something {agent_name} can help with.
- IGNORE if it is off-topic, spam, low-signal or not meant for {agent_name}.
- STOP if the participants asked {agent_name} to stop or leave the conversation.

Thread: {thread_title}
Recent messages:
{recent_messages}

Latest message from {sender_name}:
{message_text}

Answer with exactly one word: RESPOND, IGNORE or STOP.
"""

MESSAGE_HANDLER_TEMPLATE = """You are {agent_name}, a technical but friendly agent on Common.
Goal: be useful, stay on-topic, avoid spam and avoid flamewars. Keep replies short.

Thread: {thread_title}
Recent messages:
{recent_messages}

Latest message from {sender_name}:
{message_text}

Return STRICT JSON only with keys:
- text: string, the reply to post
- action: string or null, a follow-up action name if one is needed
"""

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
DECISION_RE = re.compile(r"\b(RESPOND|IGNORE|STOP)\b")


class _Blank(dict):
    def __missing__(self, key):
        return ""


def compose_context(state: dict, template: str) -> str:
    return template.format_map(_Blank(state))


def parse_response(raw: str) -> Optional[GeneratedContent]:
    """Model output -> GeneratedContent, or None when there is nothing usable to post."""
    cleaned = FENCE_RE.sub("", (raw or "").strip())
    try:
        data = json.loads(cleaned)
    except ValueError:
        log.warning("[WARN] model returned non-JSON: %r", cleaned[:120])
        return None
    if not isinstance(data, dict):
        return None

    text = str(data.get("text") or "").strip()
    if not text:
        return None
    action = data.get("action")
    if not isinstance(action, str) or action.strip().upper() in ("", "NONE", "NULL"):
        action = None
    return GeneratedContent(text=text, action=action)


def parse_should_respond(raw: str) -> str:
    m = DECISION_RE.search((raw or "").upper())
    return m.group(1) if m else "IGNORE"


class OllamaClient:
    def __init__(self, base: str, model: str, small_model: Optional[str] = None,
                 timeout: float = 120, session=None):
        self.base = base.rstrip("/")
        self.model = model
        self.small_model = small_model or model
        self.timeout = timeout
        self.http = session or requests.Session()

    def complete(self, prompt: str, model: Optional[str] = None) -> str:
        payload = {"model": model or self.model, "prompt": prompt, "stream": False}
        r = self.http.post(f"{self.base}/api/generate", json=payload, timeout=self.timeout)
        r.raise_for_status()
        return (r.json().get("response") or "").strip()

    def generate_response(self, context: str) -> Optional[GeneratedContent]:
        return parse_response(self.complete(context, self.model))

    def classify(self, context: str) -> bool:
        decision = parse_should_respond(self.complete(context, self.small_model))
        log.debug("should-respond decision: %s", decision)
        return decision == "RESPOND"
