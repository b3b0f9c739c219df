import logging
from typing import Mapping, Optional
from uuid import UUID

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from mention_agent.common_api import CommonApiClient
from mention_agent.config import Settings, load_settings
from mention_agent.errors import ConfigError, InvalidEvent, Unauthorized, WebhookError
from mention_agent.identity import stable_uuid
from mention_agent.llm import OllamaClient
from mention_agent.logging_config import setup_logging
from mention_agent.models import SelfIdentity, parse_event_body
from mention_agent.orchestrator import ResponseOrchestrator
from mention_agent.runtime import AgentRuntime, LocalRuntime
from mention_agent.signature import verify_request

log = logging.getLogger(__name__)


# ---------- app ----------
def create_app(orchestrator: ResponseOrchestrator, me: SelfIdentity, signing_keys: Mapping[str, str],
               signature_header: str = "x-signature") -> FastAPI:
    app = FastAPI(title="Common Mention Agent", version="0.1.0")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        log.debug("[HTTP] incoming %s %s", request.method, request.url.path)
        return await call_next(request)

    def handle_delivery(raw_body: bytes, header: Optional[str]) -> Response:
        # schema first, so routing (community_id -> key) only trusts a well-formed body;
        # the signature itself is always computed over raw_body
        validation = parse_event_body(raw_body)
        if not validation.ok:
            log.warning("[WARN] invalid request body: %s", validation.errors)
            raise InvalidEvent(validation.errors)
        event = validation.event

        verdict = verify_request(raw_body, header, event.community_id, signing_keys)
        if not verdict.accepted:
            log.warning("[WARN] rejected delivery community=%s reason=%s", event.community_id, verdict.reason)
            raise Unauthorized(verdict.reason)

        outcome = orchestrator.process(event)
        log.debug("handled thread=%s outcome=%s", event.thread_id, outcome.value)
        return Response(status_code=200)

    def _not_ours(agent_id: str) -> bool:
        return agent_id != str(me.id)

    @app.get("/webhook/{agent_id}")
    def health(agent_id: str):
        if _not_ours(agent_id):
            return JSONResponse(status_code=404, content={"error": "Not found"})
        return {"message": "Success"}

    @app.post("/webhook/{agent_id}")
    async def webhook(agent_id: str, request: Request):
        if _not_ours(agent_id):
            return JSONResponse(status_code=404, content={"error": "Not found"})
        raw_body = await request.body()
        try:
            # blocking I/O (content fetch, model, publish) runs off the event loop
            return await run_in_threadpool(handle_delivery, raw_body, request.headers.get(signature_header))
        except WebhookError as e:
            if e.status_code >= 500:
                log.error("[ERR] error processing request: %s", e)
            return JSONResponse(status_code=e.status_code, content=e.payload())
        except Exception:
            log.exception("[ERR] error processing request")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


# ---------- client ----------
def build_runtime(settings: Settings, me: SelfIdentity) -> LocalRuntime:
    agent_id = UUID(settings.agent_id) if settings.agent_id else stable_uuid(f"agent-{me.display_name}")
    llm = OllamaClient(settings.ollama_base, settings.ollama_model, settings.ollama_small_model)
    return LocalRuntime(agent_id, llm)


class MentionClient:
    """Owns the API client, runtime and HTTP server for one agent process."""

    def __init__(self, settings: Settings, runtime: Optional[AgentRuntime] = None,
                 api: Optional[CommonApiClient] = None):
        self.settings = settings
        self.api = api or CommonApiClient(settings.api_url, settings.api_key, settings.wallet_address,
                                          timeout=settings.request_timeout)
        self.runtime = runtime
        self.me: Optional[SelfIdentity] = None
        self.app: Optional[FastAPI] = None
        self.server: Optional[uvicorn.Server] = None

    @property
    def webhook_path(self) -> str:
        return f"/webhook/{self.me.id}"

    def start(self) -> FastAPI:
        log.info("Starting Common client...")
        me = self.api.get_self_identity()
        if self.settings.agent_name:
            me = SelfIdentity(id=me.id, display_name=self.settings.agent_name)
        self.me = me
        if self.runtime is None:
            self.runtime = build_runtime(self.settings, me)

        orchestrator = ResponseOrchestrator(self.runtime, self.api, me, fetch_timeout=self.settings.request_timeout)
        self.app = create_app(orchestrator, me, self.settings.signing_keys, self.settings.signature_header)
        if not self.settings.signing_keys:
            log.warning("[WARN] COMMON_WEBHOOK_SIGNING_KEYS not set, webhook signatures will not be checked")
        log.info("[OK] webhook URL: http://localhost:%s%s", self.settings.webhook_port, self.webhook_path)
        log.info("[OK] interact by mentioning @%s in threads or comments", me.display_name)
        return self.app

    def serve(self) -> None:
        if self.app is None:
            self.start()
        config = uvicorn.Config(self.app, host=self.settings.webhook_host, port=self.settings.webhook_port,
                                log_level=self.settings.log_level.lower())
        self.server = uvicorn.Server(config)
        self.server.run()

    def stop(self) -> None:
        log.warning("Common client stopping...")
        if self.server is not None:
            self.server.should_exit = True


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 2

    setup_logging(settings.log_level)
    client = MentionClient(settings)
    try:
        client.serve()
    except Exception:
        log.exception("[ERR] failed to start Common client")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
