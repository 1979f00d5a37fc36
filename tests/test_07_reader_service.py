"""
Tests for the ScriptReader session.

Tests cover:
- End-to-end generate: segment, synthesize, merge, encode, commit
- All-or-nothing failure keeps history and active result intact
- Restore / delete / clear interplay with resource ownership
- Stale generations are abandoned without touching state
- Progress snapshots and health payload
"""
import threading

import pytest

from script_reader.core.config import Settings
from script_reader.core.errors import (
    BackendConnectionError,
    EmptyInputError,
    GenerationAbandonedError,
    SynthesisTimeoutError,
)
from script_reader.services.reader_service import ScriptReader
from script_reader.utils.audio import WAV_HEADER_SIZE, parse_wav_header


def _settings(**sections) -> Settings:
    raw = {"backend": {"engine": "stub"}}
    raw.update(sections)
    return Settings(raw=raw)


@pytest.fixture
def reader_factory(make_backend):
    created = []

    def _make(settings=None, **backend_kwargs):
        settings = settings or _settings()
        backend = make_backend(settings, **backend_kwargs)
        reader = ScriptReader(settings, backend=backend)
        created.append(reader)
        return reader, backend

    yield _make
    for reader in created:
        reader.close()


class TestGenerate:
    """Successful runs."""

    def test_two_paragraphs_under_limit_single_segment(self, reader_factory):
        text = "Hello world.\n\nThis is a second paragraph."
        pcm = b"\x01\x00\x02\x00\x03\x00"
        reader, backend = reader_factory(outputs={text: pcm})

        result = reader.generate(text)

        assert backend.calls == [text]
        assert result.segments == 1
        header = parse_wav_header(result.wav_bytes)
        assert header.data_size == len(pcm)
        assert header.sample_rate == 24000
        assert result.wav_bytes[WAV_HEADER_SIZE:] == pcm

    def test_commit_adds_entry_and_sets_active(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("Hello.")

        assert [e.id for e in reader.history()] == [result.entry_id]
        assert reader.active is result.entry.resource
        assert reader.active.data == result.wav_bytes
        # history + active slot; creator reference already dropped
        assert result.entry.resource.owners == 2

    def test_progress_callback_per_segment(self, reader_factory):
        reader, backend = reader_factory(_settings(segmenting={"soft_limit": 5}))
        seen = []

        result = reader.generate("one\n\ntwo\n\nthree", on_progress=lambda c, t: seen.append((c, t)))

        assert seen == [(1, 3), (2, 3), (3, 3)]
        assert backend.calls == ["one", "two", "three"]
        assert result.wav_bytes[WAV_HEADER_SIZE:] == "onetwothree".encode("utf-16-le")

    def test_generation_ids_increase(self, reader_factory):
        reader, _ = reader_factory()
        first = reader.generate("a")
        second = reader.generate("b")
        assert second.generation_id == first.generation_id + 1
        assert [e.id for e in reader.history()] == [second.entry_id, first.entry_id]
        assert first.entry.resource.owners == 1

    def test_input_truncated_to_max_chars(self, reader_factory):
        reader, backend = reader_factory(_settings(text={"max_chars": 10}))
        reader.generate("abcdefghijklmnop")
        assert reader.input_text == "abcdefghij"
        assert backend.calls == ["abcdefghij"]

    def test_progress_done_after_success(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("a")
        progress = reader.progress
        assert progress.state == "done"
        assert progress.current == 1
        assert progress.total == 1
        assert progress.generation_id == result.generation_id
        assert progress.to_dict()["elapsed_s"] is None

    def test_timings_reported(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("a")
        for key in ("segment", "synth", "merge", "encode", "total"):
            assert key in result.timings


class TestFailure:
    """Errors leave the session as it was."""

    def test_empty_input_makes_no_calls(self, reader_factory):
        reader, backend = reader_factory()
        with pytest.raises(EmptyInputError):
            reader.generate("  \n\n \t ")
        assert backend.calls == []
        assert reader.history() == []
        assert reader.progress.state == "idle"
        assert reader.progress.generation_id == 0

    def test_empty_input_keeps_previous_input_and_progress(self, reader_factory):
        reader, _ = reader_factory()
        prior = reader.generate("kept")

        with pytest.raises(EmptyInputError):
            reader.generate("   \n\n  ")

        assert reader.input_text == "kept"
        assert reader.progress.state == "done"
        assert reader.progress.generation_id == prior.generation_id
        assert reader.active is prior.entry.resource

    def test_failing_progress_callback_marks_run_failed(self, reader_factory):
        reader, _ = reader_factory()

        def on_progress(current, total):
            raise RuntimeError("display gone")

        with pytest.raises(RuntimeError):
            reader.generate("a", on_progress=on_progress)

        assert reader.progress.state == "failed"
        assert reader.progress.error == "display gone"
        assert reader.history() == []

    def test_failure_on_second_of_three_keeps_prior_active(self, reader_factory):
        reader, backend = reader_factory(
            _settings(segmenting={"soft_limit": 5}),
            failures={"two": BackendConnectionError("Rpc failed")},
        )
        prior = reader.generate("prior")
        backend.calls.clear()

        with pytest.raises(BackendConnectionError) as exc_info:
            reader.generate("one\n\ntwo\n\nthree")

        assert exc_info.value.segment_index == 1
        assert backend.calls == ["one", "two"]
        assert [e.id for e in reader.history()] == [prior.entry_id]
        assert reader.active is prior.entry.resource
        assert reader.active.data == prior.wav_bytes
        assert reader.progress.state == "failed"
        assert reader.progress.error == "Connection failed. Please try again."

    def test_timeout_surfaces_and_keeps_history(self, reader_factory):
        gate = threading.Event()
        reader, _ = reader_factory(
            _settings(backend={"engine": "stub", "timeout_s": 0.05}),
            hook=lambda text: gate.wait(5.0) if text == "slow" else None,
        )
        try:
            prior = reader.generate("fast")
            with pytest.raises(SynthesisTimeoutError):
                reader.generate("slow")
        finally:
            gate.set()
        assert len(reader.history()) == 1
        assert reader.active is prior.entry.resource


class TestHistoryOperations:
    """Restore, delete and clear."""

    def test_restore_then_delete_other_entry(self, reader_factory):
        reader, _ = reader_factory()
        first = reader.generate("first")
        second = reader.generate("second")

        assert reader.restore(first.entry_id) is first.entry
        assert reader.active is first.entry.resource

        assert reader.delete(second.entry_id) is True
        assert second.entry.resource.released is True
        assert reader.active.data == first.wav_bytes

    def test_restore_loads_input_text(self, reader_factory):
        reader, _ = reader_factory()
        first = reader.generate("alpha")
        reader.generate("beta")
        assert reader.input_text == "beta"
        reader.restore(first.entry_id)
        assert reader.input_text == "alpha"

    def test_restore_without_full_text_uses_snippet(self, reader_factory):
        reader, _ = reader_factory(_settings(history={"snippet_chars": 5, "store_full_text": False}))
        first = reader.generate("abcdefghij")
        reader.generate("other")

        assert first.entry.full_text is None
        reader.restore(first.entry_id)
        assert reader.input_text == "abcde..."

    def test_unknown_ids_are_soft_failures(self, reader_factory):
        reader, _ = reader_factory()
        assert reader.restore("nope") is None
        assert reader.delete("nope") is False
        assert reader.get("nope") is None

    def test_delete_active_entry_clears_active(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("a")
        assert reader.delete(result.entry_id) is True
        assert reader.active is None
        assert result.entry.resource.released is True

    def test_clear_keeps_history(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("a")
        reader.clear()

        assert reader.active is None
        assert reader.input_text == ""
        assert reader.progress.state == "idle"
        assert reader.history()[0].resource.data == result.wav_bytes

    def test_clear_history_releases_everything(self, reader_factory):
        reader, _ = reader_factory()
        a = reader.generate("a")
        b = reader.generate("b")
        assert reader.clear_history() == 2
        assert reader.active is None
        assert reader.history() == []
        assert a.entry.resource.released and b.entry.resource.released


class TestStaleGenerations:
    """A newer generate() supersedes older ones."""

    def _run_in_thread(self, reader, text):
        outcome = {}

        def _target():
            try:
                outcome["result"] = reader.generate(text)
            except Exception as e:
                outcome["error"] = e

        thread = threading.Thread(target=_target)
        thread.start()
        return thread, outcome

    def test_stale_result_is_discarded(self, reader_factory):
        entered = threading.Event()
        gate = threading.Event()

        def hook(text):
            if text == "slow":
                entered.set()
                gate.wait(5.0)

        reader, _ = reader_factory(hook=hook)
        thread, outcome = self._run_in_thread(reader, "slow")
        try:
            assert entered.wait(5.0)
            fast = reader.generate("fast")
        finally:
            gate.set()
            thread.join(5.0)

        assert isinstance(outcome.get("error"), GenerationAbandonedError)
        assert [e.id for e in reader.history()] == [fast.entry_id]
        assert reader.active is fast.entry.resource
        assert reader.progress.state == "done"
        assert reader.progress.generation_id == fast.generation_id
        assert reader.cache.stats()["live_resources"] == 1

    def test_blank_request_does_not_supersede_running_generation(self, reader_factory):
        entered = threading.Event()
        gate = threading.Event()

        def hook(text):
            if text == "slow":
                entered.set()
                gate.wait(5.0)

        reader, _ = reader_factory(hook=hook)
        thread, outcome = self._run_in_thread(reader, "slow")
        try:
            assert entered.wait(5.0)
            with pytest.raises(EmptyInputError):
                reader.generate("   \n\n  ")
            assert reader.input_text == "slow"
            assert reader.progress.state == "running"
        finally:
            gate.set()
            thread.join(5.0)

        assert "error" not in outcome
        result = outcome["result"]
        assert [e.id for e in reader.history()] == [result.entry_id]
        assert reader.active is result.entry.resource
        assert reader.progress.state == "done"

    def test_stale_run_stops_before_next_segment(self, reader_factory):
        entered = threading.Event()
        gate = threading.Event()

        def hook(text):
            if text == "slow":
                entered.set()
                gate.wait(5.0)

        reader, backend = reader_factory(_settings(segmenting={"soft_limit": 5}), hook=hook)
        thread, outcome = self._run_in_thread(reader, "slow\n\nnext")
        try:
            assert entered.wait(5.0)
            reader.generate("fast")
        finally:
            gate.set()
            thread.join(5.0)

        assert isinstance(outcome.get("error"), GenerationAbandonedError)
        assert "next" not in backend.calls
        assert len(reader.history()) == 1


class TestHealth:
    """health() payload."""

    def test_health_keys(self, reader_factory):
        reader, _ = reader_factory()
        reader.generate("a")
        health = reader.health()

        assert health["ok"] is True
        assert health["backend"]["engine"] == "scripted"
        assert health["audio"] == {"sample_rate": 24000, "channels": 1, "bits_per_sample": 16}
        assert health["segmenting"]["soft_limit"] == 800
        assert health["text"]["max_chars"] == 10000
        assert health["history"]["entries"] == 1
        assert health["history"]["active"] == 1
        assert health["progress"]["state"] == "done"

    def test_close_releases_audio(self, reader_factory):
        reader, _ = reader_factory()
        result = reader.generate("a")
        reader.close()
        assert result.entry.resource.released is True
