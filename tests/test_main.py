"""Client startup wiring."""
from uuid import UUID

from fastapi.testclient import TestClient

from conftest import AGENT_ID, FakeCommonApi, FakeLLM
from mention_agent.config import load_settings
from mention_agent.identity import stable_uuid
from mention_agent.main import MentionClient, build_runtime
from mention_agent.models import SelfIdentity
from mention_agent.runtime import LocalRuntime


class StartupApi(FakeCommonApi):
    def get_self_identity(self):
        return SelfIdentity(id=99, display_name="agent")


def settings(**extra):
    return load_settings({"COMMON_API_KEY": "key", "COMMON_WALLET_ADDRESS": "0xabc", **extra})


class TestMentionClient:
    def test_start_mounts_webhook_for_own_user(self):
        client = MentionClient(settings(), runtime=LocalRuntime(AGENT_ID, FakeLLM()), api=StartupApi())
        app = client.start()
        assert client.webhook_path == "/webhook/99"
        assert TestClient(app).get("/webhook/99").json() == {"message": "Success"}

    def test_agent_name_override(self):
        client = MentionClient(settings(AGENT_NAME="Re4ctoRTrust"), runtime=LocalRuntime(AGENT_ID, FakeLLM()),
                               api=StartupApi())
        client.start()
        assert client.me == SelfIdentity(id=99, display_name="Re4ctoRTrust")

    def test_stop_before_serve(self):
        MentionClient(settings(), api=StartupApi()).stop()


class TestBuildRuntime:
    def test_agent_id_from_settings(self):
        rt = build_runtime(settings(AGENT_ID=str(AGENT_ID)), SelfIdentity(99, "agent"))
        assert rt.agent_id == AGENT_ID

    def test_agent_id_derived_from_name(self):
        rt = build_runtime(settings(), SelfIdentity(99, "agent"))
        assert rt.agent_id == stable_uuid("agent-agent")
        assert isinstance(rt.agent_id, UUID)
