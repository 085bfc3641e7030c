import json

from marginalia.core.models import AnnotationResult, NoteKind, NoteStatus
from marginalia.editor.segmenter import segment
from marginalia.storage import MemoryKeyValueStore, NoteStore

KEY = "marginalia-notes"


def test_lifecycle_transitions(kv) -> None:
    store = NoteStore(kv, key=KEY)
    assert store.get(0) is None

    pending = store.set_pending(0, fingerprint="abc")
    assert pending.status is NoteStatus.PENDING
    assert pending.text == "Thinking..."

    resolved = store.set_resolved(0, AnnotationResult(kind=NoteKind.QUESTION, text="Why?"))
    assert resolved.status is NoteStatus.RESOLVED
    assert resolved.kind is NoteKind.QUESTION
    assert resolved.fingerprint == "abc"

    failed = store.set_failed(1)
    assert failed.status is NoteStatus.FAILED
    assert failed.text == "Unable to generate reflection. Please try again."

    store.clear(1)
    assert store.get(1) is None
    assert [i for i, _ in store.items()] == [0]


def test_every_mutation_is_written_through(kv) -> None:
    store = NoteStore(kv, key=KEY)

    store.set_pending(3)
    assert json.loads(kv.get_item(KEY))["3"]["status"] == "pending"

    store.set_failed(3, "Try later.")
    assert json.loads(kv.get_item(KEY))["3"]["text"] == "Try later."

    store.clear(3)
    assert json.loads(kv.get_item(KEY)) == {}


def test_persistence_round_trip(kv) -> None:
    store = NoteStore(kv, key=KEY)
    store.set_resolved(0, AnnotationResult(kind=NoteKind.COMMENTARY, text="x"))
    store.set_failed(2)

    reloaded = NoteStore(kv, key=KEY)

    assert [i for i, _ in reloaded.items()] == [0, 2]
    assert reloaded.get(0).status is NoteStatus.RESOLVED
    assert reloaded.get(0).kind is NoteKind.COMMENTARY
    assert reloaded.get(0).text == "x"
    assert reloaded.get(2).status is NoteStatus.FAILED
    assert reloaded.snapshot() == store.snapshot()


def test_corrupt_mapping_loads_empty() -> None:
    for raw in ("{not json", "[1, 2]", '"text"'):
        store = NoteStore(MemoryKeyValueStore({KEY: raw}), key=KEY)
        assert len(store) == 0


def test_invalid_entries_are_skipped() -> None:
    raw = json.dumps(
        {
            "0": {"status": "resolved", "kind": "question", "text": "Why?"},
            "one": {"status": "resolved", "text": "bad key"},
            "2": {"status": "exploded", "text": "bad status"},
        }
    )
    store = NoteStore(MemoryKeyValueStore({KEY: raw}), key=KEY)

    assert [i for i, _ in store.items()] == [0]


def test_pending_entries_do_not_survive_restart() -> None:
    raw = json.dumps({"0": {"status": "pending", "text": "Thinking..."}})
    store = NoteStore(MemoryKeyValueStore({KEY: raw}), key=KEY)

    assert store.get(0) is None


def test_legacy_records_are_accepted() -> None:
    raw = json.dumps(
        {
            "0": {"text": "Be gentle.", "type": "commentary", "isVisible": True, "isLoading": False},
            "1": {"text": "Thinking...", "type": "commentary", "isVisible": True, "isLoading": True},
        }
    )
    store = NoteStore(MemoryKeyValueStore({KEY: raw}), key=KEY)

    assert store.get(0).status is NoteStatus.RESOLVED
    assert store.get(0).text == "Be gentle."
    assert store.get(1) is None


def test_suppress_hides_but_keeps_note(kv) -> None:
    store = NoteStore(kv, key=KEY)
    store.set_resolved(0, AnnotationResult(kind=NoteKind.COMMENTARY, text="x"))

    note = store.suppress(0)

    assert note is not None and note.is_visible is False
    assert NoteStore(kv, key=KEY).get(0).is_visible is False
    assert store.suppress(5) is None


def _resolve(store, paragraph, text="note"):
    store.set_pending(paragraph.index, paragraph.fingerprint)
    store.set_resolved(paragraph.index, AnnotationResult(kind=NoteKind.COMMENTARY, text=text))


def test_reconcile_prunes_notes_beyond_document(kv) -> None:
    store = NoteStore(kv, key=KEY)
    paragraphs = segment("First paragraph here.\n\nSecond paragraph here.")
    _resolve(store, paragraphs[0], "one")
    _resolve(store, paragraphs[1], "two")

    changed = store.reconcile(segment("First paragraph here."))

    assert changed
    assert [i for i, _ in store.items()] == [0]
    assert "1" not in json.loads(kv.get_item(KEY))


def test_reconcile_follows_paragraph_after_insertion(kv) -> None:
    store = NoteStore(kv, key=KEY)
    before = segment("Walked to the river.\n\nThe water was cold.")
    _resolve(store, before[0], "river note")
    _resolve(store, before[1], "water note")

    after = segment("A new opening line.\n\nWalked to the river.\n\nThe water was cold.")
    store.reconcile(after)

    assert store.get(0) is None
    assert store.get(1).text == "river note"
    assert store.get(2).text == "water note"


def test_reconcile_without_reanchoring_marks_stale(kv) -> None:
    store = NoteStore(kv, key=KEY, reanchor=False)
    before = segment("Walked to the river.\n\nThe water was cold.")
    _resolve(store, before[0], "river note")

    store.reconcile(segment("A new opening line.\n\nWalked to the river.\n\nThe water was cold."))

    assert store.get(0).text == "river note"
    assert store.get(0).stale is True
    assert store.get(1) is None


def test_reconcile_marks_edited_paragraph_stale_and_recovers(kv) -> None:
    store = NoteStore(kv, key=KEY)
    original = segment("I feel stuck today.")
    _resolve(store, original[0])

    store.reconcile(segment("I feel stuck today, again."))
    assert store.get(0).stale is True

    store.reconcile(original)
    assert store.get(0).stale is False


def test_reconcile_leaves_pending_notes_alone(kv) -> None:
    store = NoteStore(kv, key=KEY)
    store.set_pending(4, fingerprint="whatever")

    changed = store.reconcile(segment("Only one paragraph."))

    assert not changed
    assert store.get(4).status is NoteStatus.PENDING
