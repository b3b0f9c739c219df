class WebhookError(Exception):
    """Base error for a single webhook delivery; carries the HTTP status to answer with."""

    status_code = 500
    public_message = "Internal server error"

    def payload(self) -> dict:
        return {"error": self.public_message}


class InvalidEvent(WebhookError):
    status_code = 400
    public_message = "Invalid request body"

    def __init__(self, field_errors):
        super().__init__("invalid event: " + "; ".join(f"{k}: {v}" for k, v in field_errors.items()))
        self.field_errors = dict(field_errors)

    def payload(self) -> dict:
        return {"error": self.public_message, "schemaErrors": self.field_errors}


class Unauthorized(WebhookError):
    # every auth failure answers with the same body; `reason` is for logs only
    status_code = 401
    public_message = "UNAUTHORIZED"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class FetchFailure(WebhookError):
    status_code = 400
    public_message = "Failed to fetch content from the provided URL"

    def __init__(self, url: str, status=None):
        super().__init__(f"content fetch failed url={url} status={status}")
        self.url = url
        self.status = status


class PublishError(WebhookError):
    """Posting the reply failed. Never retried: a retry could double-post."""

    def __init__(self, thread_id: int, detail: str):
        super().__init__(f"publish failed thread={thread_id}: {detail}")
        self.thread_id = thread_id


class ConfigError(Exception):
    pass
