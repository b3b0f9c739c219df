import logging
from typing import Optional

import requests

from mention_agent.errors import PublishError
from mention_agent.models import PublishedReply, SelfIdentity

log = logging.getLogger(__name__)


class CommonApiClient:
    """Thin client for the two Common API calls the agent makes."""

    def __init__(self, base: str, api_key: str, address: str, timeout: float = 30, session=None):
        if not api_key:
            raise ValueError("Common API key is empty")
        self.base = base.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({
            "x-api-key": api_key,
            "address": address,
            "Content-Type": "application/json",
        })

    def get_self_identity(self) -> SelfIdentity:
        r = self.http.get(f"{self.base}/user", timeout=self.timeout)
        r.raise_for_status()
        j = r.json()
        if "id" not in j:
            raise RuntimeError("Common user not found")
        name = (j.get("profile") or {}).get("name") or j.get("name") or str(j["id"])
        return SelfIdentity(id=int(j["id"]), display_name=name)

    def post_reply(self, thread_id: int, body: str, parent_id: Optional[int] = None,
                   idempotency_key: Optional[str] = None) -> PublishedReply:
        payload = {"thread_id": thread_id, "body": body}
        if parent_id is not None:
            payload["parent_id"] = parent_id
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None

        try:
            r = self.http.post(f"{self.base}/comment", json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise PublishError(thread_id, str(e)) from e
        if r.status_code not in (200, 201):
            raise PublishError(thread_id, f"{r.status_code}: {r.text[:300]}")
        return PublishedReply.model_validate(r.json())
