from openclaw_mem.ingest import capture_tool_result, ensure_session, record_observation, tool_text
from openclaw_mem.store import CaptureMetadata, MemoryStore
from openclaw_mem.store.utils import TRUNCATION_MARKER


def test_ensure_session_is_get_or_create(store: MemoryStore) -> None:
    created = ensure_session(store, "s1", "/work/app")
    again = ensure_session(store, "s1", "/elsewhere")
    assert again.id == created.id
    assert again.project_path == "/work/app"


def test_capture_truncates_and_records_metadata(store: MemoryStore) -> None:
    long_input = "a" * (MemoryStore.INPUT_MAX_CHARS + 10)
    long_output = "b" * (MemoryStore.OUTPUT_MAX_CHARS + 1)
    obs = capture_tool_result(store, "s1", "Read", long_input, long_output)

    assert obs.input == "a" * MemoryStore.INPUT_MAX_CHARS + TRUNCATION_MARKER
    assert obs.output == "b" * MemoryStore.OUTPUT_MAX_CHARS + TRUNCATION_MARKER
    assert obs.type == "exploration"
    assert obs.metadata == CaptureMetadata(
        classified=True, input_truncated=True, output_truncated=True, rule="read_tool"
    )
    assert store.get_session("s1") is not None


def test_capture_honours_caller_type_and_importance(store: MemoryStore) -> None:
    typed = capture_tool_result(
        store, "s1", "Bash", "ls", "done", observation_type="Architecture"
    )
    assert typed.type == "architecture"
    assert typed.importance == 0.9
    assert typed.metadata == CaptureMetadata(classified=False)

    weighted = capture_tool_result(store, "s1", "Bash", "ls", "done", importance=0.15)
    assert weighted.type == "tool_use"
    assert weighted.importance == 0.15


def test_capture_serializes_structured_tool_input(store: MemoryStore) -> None:
    obs = capture_tool_result(store, "s1", "Edit", {"path": "a.py", "old": "x"}, None)
    assert obs.input == '{"old": "x", "path": "a.py"}'
    assert obs.output is None
    assert tool_text(None) is None
    assert tool_text("plain") == "plain"


def test_record_observation_scores_missing_importance(store: MemoryStore) -> None:
    obs = record_observation(store, "s1", "decision", summary="adopt typer")
    assert obs.importance == 0.85
    explicit = record_observation(store, "s1", "decision", importance=0.3)
    assert explicit.importance == 0.3
