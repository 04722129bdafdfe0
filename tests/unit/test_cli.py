"""
Unit tests for the command-line interface.
"""

from unittest.mock import MagicMock

import pytest

import translate
from epub2zh.core.adapters import ResumeError
from epub2zh.core.models import JobStatus
from epub2zh.core.orchestrator import TaskOrchestrator
from epub2zh.persistence import JobStore, ProgressStore


class TestArguments:
    """Test argument parsing."""

    def test_defaults(self):
        args = translate.build_parser().parse_args(["-i", "book.epub"])
        options = translate.options_from_args(args)

        assert options['translate'] is True
        assert options['render_pdf'] is True
        assert options['output_path'] is None
        assert args.resume is None

    def test_flags(self):
        args = translate.build_parser().parse_args([
            "-i", "book.pdf", "-o", "out/book.pdf", "--backend", "google",
            "--no-pdf", "--max-segment-chars", "1500", "--delay", "0.5"
        ])
        options = translate.options_from_args(args)

        assert options['backend'] == "google"
        assert options['render_pdf'] is False
        assert options['max_segment_chars'] == 1500
        assert options['segment_delay'] == 0.5
        assert options['output_path'] == "out/book.pdf"

    def test_unset_flags_take_configured_defaults(self):
        args = translate.build_parser().parse_args(["-i", "book.epub"])
        options = translate.options_from_args(args)

        assert options['backend'] == translate.TRANSLATOR_API.lower()
        assert options['max_segment_chars'] == translate.MAX_SEGMENT_CHARS
        assert options['segment_delay'] == translate.TRANSLATE_DELAY

    def test_resume_passes_only_given_flags(self):
        args = translate.build_parser().parse_args(["--resume", "job-1"])
        assert translate.resume_options_from_args(args) == {}

        args = translate.build_parser().parse_args([
            "--resume", "job-1", "--api-key", "new-key", "--delay", "0", "--no-pdf", "--max-segment-chars", "10"
        ])
        assert translate.resume_options_from_args(args) == {
            'api_key': "new-key", 'segment_delay': 0.0, 'render_pdf': False
        }

    def test_unknown_backend_rejected(self):
        with pytest.raises(SystemExit):
            translate.build_parser().parse_args(["-i", "book.epub", "--backend", "babelfish"])

    def test_input_required_without_resume(self):
        with pytest.raises(SystemExit) as exc_info:
            translate.main([])
        assert exc_info.value.code == 2

    def test_resume_with_no_translate_rejected(self):
        with pytest.raises(SystemExit):
            translate.main(["--resume", "job-1", "--no-translate"])


@pytest.fixture
def cli_dirs(tmp_path, monkeypatch):
    checkpoints = tmp_path / "checkpoints"
    output = tmp_path / "output"
    monkeypatch.setattr(translate, 'CHECKPOINT_DIR', str(checkpoints))
    monkeypatch.setattr(translate, 'OUTPUT_DIR', str(output))
    return checkpoints, output


class TestRun:
    """Test running jobs from the command line."""

    @pytest.mark.asyncio
    async def test_convert_epub_to_text(self, cli_dirs, multi_chapter_epub):
        args = translate.build_parser().parse_args([
            "-i", str(multi_chapter_epub), "--backend", "simulate", "--no-pdf", "--delay", "0"
        ])
        logger = MagicMock()

        code = await translate.run(args, logger)

        assert code == 0
        checkpoints, output = cli_dirs
        texts = list(output.glob("*_translated.txt"))
        assert len(texts) == 1
        assert texts[0].read_text(encoding='utf-8').strip()
        assert any(c.args[0] == "Job Completed" for c in logger.info.call_args_list)

    @pytest.mark.asyncio
    async def test_missing_input_fails(self, cli_dirs, tmp_path):
        args = translate.build_parser().parse_args([
            "-i", str(tmp_path / "missing.epub"), "--backend", "simulate", "--no-pdf"
        ])
        logger = MagicMock()

        code = await translate.run(args, logger)

        assert code == 1
        logger.error.assert_called()

    @pytest.mark.asyncio
    async def test_resume_unknown_job(self, cli_dirs):
        args = translate.build_parser().parse_args(["--resume", "missing", "--no-pdf"])

        with pytest.raises(ResumeError):
            await translate.run(args, MagicMock())

    def test_main_reports_resume_error(self, cli_dirs):
        assert translate.main(["--resume", "missing", "--no-pdf", "--no-color"]) == 2

    @pytest.mark.asyncio
    async def test_resume_finished_job(self, cli_dirs, multi_chapter_epub):
        checkpoints, output = cli_dirs
        first = translate.build_parser().parse_args([
            "-i", str(multi_chapter_epub), "--backend", "simulate", "--no-pdf", "--delay", "0"
        ])
        await translate.run(first, MagicMock())

        job = ProgressStore(str(checkpoints), str(output)).list_jobs()[0]
        assert job.status == JobStatus.COMPLETED

        again = translate.build_parser().parse_args(["--resume", job.job_id, "--backend", "simulate", "--no-pdf"])
        assert await translate.run(again, MagicMock()) == 0

    def test_resume_keeps_stored_options(self, cli_dirs):
        checkpoints, output = cli_dirs
        progress_store = ProgressStore(str(checkpoints), str(output))
        job_store = JobStore(progress_store)
        job_store.create_job("book.epub", {'backend': 'deepseek', 'segment_delay': 1.5, 'render_pdf': False},
                             job_id="job-1")
        job_store.update_job("job-1", status=JobStatus.ERROR)

        args = translate.build_parser().parse_args(["--resume", "job-1"])
        orchestrator = TaskOrchestrator(JobStore(progress_store), progress_store)
        _, options = orchestrator.prepare_resume("job-1", None, translate.resume_options_from_args(args))

        assert options.backend == "DEEPSEEK"
        assert options.segment_delay == 1.5
        assert options.render_pdf is False

    def test_resume_flag_overrides_stored_backend(self, cli_dirs):
        checkpoints, output = cli_dirs
        progress_store = ProgressStore(str(checkpoints), str(output))
        JobStore(progress_store).create_job("book.epub", {'backend': 'deepseek'}, job_id="job-1")

        args = translate.build_parser().parse_args(["--resume", "job-1", "--backend", "google"])
        orchestrator = TaskOrchestrator(JobStore(progress_store), progress_store)
        _, options = orchestrator.prepare_resume("job-1", None, translate.resume_options_from_args(args))

        assert options.backend == "GOOGLE"
