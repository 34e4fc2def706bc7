from chatbot.core.state import ConversationStep, SessionRegistry
from chatbot.engine import WELCOME_MESSAGE
from chatbot.service import ChatService, build_chat_service
from chatbot.transcripts import InMemoryTranscriptStore
from config.settings import Settings


def make_service(engine, **registry_kwargs):
    return ChatService(engine, InMemoryTranscriptStore(), SessionRegistry(**registry_kwargs))


def test_new_session_gets_generated_id_and_welcome(engine):
    service = make_service(engine)

    reply = service.handle_message("hello")

    assert reply.session_id
    assert reply.response == WELCOME_MESSAGE
    assert reply.step == ConversationStep.SELECT_COUNTRY


def test_conversation_flows_and_is_recorded(engine):
    service = make_service(engine)
    sid = service.handle_message("hello", user_id="u-1").session_id

    reply = service.handle_message("Spain", session_id=sid, user_id="u-1")
    assert reply.selected_country == "Spain"
    assert reply.step == ConversationStep.CHOOSE_OPTION

    transcript = service.transcripts.find_by_session(sid)
    assert [m.role for m in transcript.messages] == ["user", "bot", "user", "bot"]
    assert transcript.messages[2].content == "Spain"
    assert transcript.user_id == "u-1"


def test_exit_discards_session(engine):
    service = make_service(engine)
    sid = service.handle_message("hello").session_id
    service.handle_message("Spain", session_id=sid)

    reply = service.handle_message("G", session_id=sid)
    assert reply.ended is True
    assert service.sessions.get(sid) is None

    assert service.handle_message("again", session_id=sid).response == WELCOME_MESSAGE


def test_idle_session_times_out(engine):
    now = [0.0]
    service = make_service(engine, timeout_seconds=60, clock=lambda: now[0])
    sid = service.handle_message("hello").session_id
    service.handle_message("Spain", session_id=sid)

    now[0] = 61
    assert service.handle_message("A", session_id=sid).response == WELCOME_MESSAGE


def test_transcript_failure_does_not_break_reply(engine, caplog):
    class BrokenTranscripts(InMemoryTranscriptStore):
        def append(self, *args, **kwargs):
            raise OSError("disk full")

    service = ChatService(engine, BrokenTranscripts())

    assert service.handle_message("hello").response == WELCOME_MESSAGE
    assert "Failed to persist transcript" in caplog.text


def test_registry_purges_expired_sessions():
    now = [0.0]
    registry = SessionRegistry(timeout_seconds=10, clock=lambda: now[0])
    registry.acquire("a")
    now[0] = 5
    registry.acquire("b")
    now[0] = 12

    assert registry.purge_expired() == 1
    assert registry.get("a") is None
    assert registry.get("b") is not None


def test_build_chat_service_from_settings(tmp_path):
    settings = Settings()
    settings.countries_api_url = ""
    settings.transcript_db_path = str(tmp_path / "t.db")

    service = build_chat_service(settings)
    sid = service.handle_message("hello").session_id
    reply = service.handle_message("Spain", session_id=sid)

    assert reply.selected_country == "Spain"
    assert service.resolver.remote is None
    assert service.transcripts.find_by_session(sid) is not None


def test_injected_empty_registry_is_kept(engine):
    registry = SessionRegistry(timeout_seconds=5)
    service = ChatService(engine, InMemoryTranscriptStore(), registry)

    assert len(registry) == 0
    assert service.sessions is registry


def test_build_chat_service_uses_session_timeout():
    settings = Settings()
    settings.countries_api_url = ""
    settings.transcript_db_path = ""
    settings.session_timeout_seconds = 5

    service = build_chat_service(settings)

    assert service.sessions.timeout_seconds == 5


def test_idle_sessions_are_purged_on_next_message(engine):
    now = [0.0]
    service = make_service(engine, timeout_seconds=10, clock=lambda: now[0])
    for _ in range(51):
        service.handle_message("hello")
    assert len(service.sessions) == 51

    now[0] = 11
    sid = service.handle_message("hello").session_id

    assert len(service.sessions) == 1
    assert service.sessions.get(sid) is not None


def test_transcript_records_conversation_context(engine):
    service = make_service(engine)
    sid = service.handle_message("hello").session_id
    service.handle_message("detailed", session_id=sid)
    service.handle_message("Spain", session_id=sid)

    transcript = service.transcripts.find_by_session(sid)

    assert transcript.context["step"] == "CHOOSE_OPTION"
    assert transcript.context["selected_country"] == "Spain"
    assert transcript.context["detailed_mode"] is True
    assert transcript.context["interaction_count"] == 3
    assert [t.session_id for t in service.transcripts.find_by_selected_country("spain")] == [sid]
