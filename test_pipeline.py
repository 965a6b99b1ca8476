"""
Tests for the plumbing around extraction: note reading, submission,
the batch pipeline, configuration and logging.
"""

import asyncio
import json
import logging

import httpx
import pytest

from dme_extraction.config.loader import ConfigLoader, load_config, require_run_settings
from dme_extraction.engine import ExtractionPipeline
from dme_extraction.errors import ConfigError, NoteReadError, SubmissionError
from dme_extraction.extractors.rule_extractor import RuleBasedExtractor, extract_order
from dme_extraction.logging_setup import PACKAGE_LOGGER, configure_logging
from dme_extraction.config.schema import LoggingConfig
from dme_extraction.services.note_reader import NoteReader, unwrap_envelope
from dme_extraction.services.submitter import OrderSubmitter

OXYGEN_NOTE = (
    "Patient Name: Harold Finch\n"
    "DOB: 04/12/1952\n"
    "Diagnosis: COPD\n"
    "Prescription: Requires a portable oxygen tank delivering 2 L per minute.\n"
    "Usage: During sleep and exertion.\n"
    "Ordering Physician: Dr. Cuddy"
)
CPAP_NOTE = "Patient needs a CPAP with full face mask and humidifier. AHI > 20. Ordered by Dr. Cameron."


class RecordingApi:
    """httpx transport handler that records posted payloads."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.payloads = []

    def __call__(self, request):
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, text="rejected" if self.status_code >= 400 else "ok")


def _submitter(api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    return OrderSubmitter("https://api.example.test/DrExtract", client=client)


class TestNoteReader:
    def test_plain_text(self, tmp_path):
        path = tmp_path / "note.txt"
        path.write_text(OXYGEN_NOTE, encoding="utf-8")

        assert NoteReader().read_note(path) == OXYGEN_NOTE

    def test_json_envelope_is_unwrapped(self, tmp_path):
        path = tmp_path / "note.txt"
        path.write_text(json.dumps({"data": CPAP_NOTE}), encoding="utf-8")

        assert NoteReader().read_note(path) == CPAP_NOTE

    def test_invalid_json_falls_back_to_text(self):
        content = "{ this is not json but starts with a brace"

        assert unwrap_envelope(content) == content

    def test_json_without_data_key_is_kept(self):
        content = json.dumps({"note": "CPAP"})

        assert unwrap_envelope(content) == content

    def test_missing_file(self, tmp_path):
        with pytest.raises(NoteReadError):
            NoteReader().read_note(tmp_path / "missing.txt")

    def test_list_notes_filters_and_sorts(self, tmp_path):
        (tmp_path / "b.txt").write_text("b")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "ignore.json").write_text("{}")

        notes = NoteReader().list_notes(tmp_path)

        assert [p.name for p in notes] == ["a.txt", "b.txt"]

    def test_list_notes_missing_folder(self, tmp_path):
        with pytest.raises(NoteReadError, match="does not exist"):
            NoteReader().list_notes(tmp_path / "nope")


class TestOrderSubmitter:
    def test_posts_payload_without_absent_fields(self):
        api = RecordingApi()
        order = extract_order(OXYGEN_NOTE)

        asyncio.run(_submitter(api).submit(order))

        assert api.payloads == [
            {
                "device": "Oxygen Tank",
                "ordering_provider": "Dr. Cuddy",
                "liters": "2 L",
                "usage": "sleep and exertion",
                "diagnosis": "COPD",
                "patient_name": "Harold Finch",
                "dob": "04/12/1952",
            }
        ]

    def test_non_success_status_raises(self):
        api = RecordingApi(status_code=503)

        with pytest.raises(SubmissionError) as exc_info:
            asyncio.run(_submitter(api).submit(extract_order(CPAP_NOTE)))
        assert exc_info.value.status_code == 503
        assert "rejected" in str(exc_info.value)

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        submitter = OrderSubmitter("https://api.example.test/DrExtract", client=client)

        with pytest.raises(SubmissionError) as exc_info:
            asyncio.run(submitter.submit(extract_order(CPAP_NOTE)))
        assert exc_info.value.status_code is None

    def test_empty_endpoint_rejected(self):
        with pytest.raises(ValueError):
            OrderSubmitter("")


class TestExtractionPipeline:
    def _write_notes(self, folder):
        (folder / "01_oxygen.txt").write_text(OXYGEN_NOTE, encoding="utf-8")
        (folder / "02_cpap.txt").write_text(json.dumps({"data": CPAP_NOTE}), encoding="utf-8")
        (folder / "03_empty.txt").write_text("   \n", encoding="utf-8")

    def test_run_records_outcomes_per_note(self, tmp_path):
        self._write_notes(tmp_path)
        api = RecordingApi()
        pipeline = ExtractionPipeline(RuleBasedExtractor(), NoteReader(), _submitter(api))

        summary = asyncio.run(pipeline.run(tmp_path))

        assert summary.strategy == "rules"
        assert summary.total == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        failed = [o for o in summary.outcomes if not o.success]
        assert failed[0].note == "03_empty.txt"
        assert failed[0].failure_kind == "invalid_input"
        assert [p["device"] for p in api.payloads] == ["Oxygen Tank", "CPAP"]
        assert summary.completed_at is not None

    def test_submission_failures_are_counted(self, tmp_path):
        (tmp_path / "note.txt").write_text(CPAP_NOTE, encoding="utf-8")
        pipeline = ExtractionPipeline(RuleBasedExtractor(), NoteReader(), _submitter(RecordingApi(500)))

        summary = asyncio.run(pipeline.run(tmp_path))

        assert summary.failed == 1
        assert summary.outcomes[0].failure_kind == "submission_error"

    def test_unexpected_error_is_recorded_and_run_continues(self, tmp_path, caplog):
        class BrokenOnCpap(RuleBasedExtractor):
            async def extract(self, note_text):
                if "CPAP" in note_text:
                    raise RuntimeError("extractor bug")
                return await super().extract(note_text)

        self._write_notes(tmp_path)
        (tmp_path / "04_wheelchair.txt").write_text("Needs a wheelchair. Ordered by Dr. House.", encoding="utf-8")
        api = RecordingApi()
        pipeline = ExtractionPipeline(BrokenOnCpap(), NoteReader(), _submitter(api))

        summary = asyncio.run(pipeline.run(tmp_path))

        assert summary.total == 4
        assert summary.succeeded == 2
        kinds = {o.note: o.failure_kind for o in summary.outcomes if not o.success}
        assert kinds == {"02_cpap.txt": "unexpected_error", "03_empty.txt": "invalid_input"}
        assert [p["device"] for p in api.payloads] == ["Oxygen Tank", "Wheelchair"]
        logged = [r for r in caplog.records if r.exc_info and "02_cpap.txt" in r.getMessage()]
        assert logged and isinstance(logged[0].exc_info[1], RuntimeError)

    def test_dry_run_skips_submission(self, tmp_path):
        self._write_notes(tmp_path)
        pipeline = ExtractionPipeline(RuleBasedExtractor(), NoteReader(), submitter=None)

        summary = asyncio.run(pipeline.run(tmp_path))

        assert summary.succeeded == 2

    def test_empty_folder(self, tmp_path):
        pipeline = ExtractionPipeline(RuleBasedExtractor(), NoteReader())

        summary = asyncio.run(pipeline.run(tmp_path))

        assert summary.total == 0
        assert summary.failed == 0


class TestConfig:
    def test_includes_and_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DME_API_URL", "https://api.example.test/orders")
        (tmp_path / "base.yaml").write_text(
            "llm:\n  default_provider: ollama\n  ollama:\n    model: llama3.1\n"
            "api:\n  url: https://default.example.test\n",
            encoding="utf-8",
        )
        overlay = tmp_path / "overlay.yaml"
        overlay.write_text(
            "include: base.yaml\n"
            "extraction:\n  strategy: rules\n"
            "api:\n  url: ${DME_API_URL}\n"
            "notes:\n  folder: notes\n",
            encoding="utf-8",
        )

        cfg = ConfigLoader(overlay).load()

        assert cfg.llm.default_provider == "ollama"
        assert cfg.extraction.strategy == "rules"
        assert cfg.api.url == "https://api.example.test/orders"
        require_run_settings(cfg)

    def test_invalid_strategy_is_config_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("extraction:\n  strategy: psychic\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            ConfigLoader(path).load()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader(tmp_path / "missing.yaml")

    def test_defaults_without_file(self):
        cfg = load_config(None)

        assert cfg.extraction.strategy == "auto"
        assert cfg.notes.pattern == "*.txt"

    def test_run_settings_required(self):
        with pytest.raises(ConfigError, match="notes.folder"):
            require_run_settings(load_config(None))


def test_configure_logging_writes_file(tmp_path):
    log_path = tmp_path / "logs" / "app.log"
    logger = configure_logging(
        LoggingConfig(level="DEBUG", console=False, file=True, file_path=str(log_path))
    )
    try:
        extract_order("Patient needs some medical equipment.")
        for handler in logger.handlers:
            handler.flush()
        content = log_path.read_text(encoding="utf-8")
        assert "WARNING - No recognized device type found in note" in content
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET)
