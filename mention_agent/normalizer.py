import logging

import requests

from mention_agent.errors import FetchFailure
from mention_agent.models import NormalizedEvent, RawEvent

log = logging.getLogger(__name__)


def normalize(event: RawEvent, session=None, timeout: float = 30) -> NormalizedEvent:
    """Attach the full text to an event, fetching the overflow content when the summary was cut.

    One attempt only: content_url points at our own object store, so a failure
    means a bad URL or config, not network noise worth retrying.
    """
    text = event.object_summary
    if event.content_url:
        http = session or requests
        try:
            r = http.get(event.content_url, timeout=timeout)
        except requests.RequestException as e:
            log.error("[ERR] content fetch failed url=%s: %s", event.content_url, e)
            raise FetchFailure(event.content_url) from e
        if not r.ok:
            log.error("[ERR] content fetch failed url=%s status=%s", event.content_url, r.status_code)
            raise FetchFailure(event.content_url, r.status_code)
        text = r.text
        log.debug("[OK] fetched %d chars from %s", len(text), event.content_url)

    return NormalizedEvent(**event.model_dump(), full_text=text)
