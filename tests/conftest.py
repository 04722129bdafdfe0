"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from epub2zh.persistence import JobStore, ProgressStore
from tests.fixtures import create_sample_epubs


@pytest.fixture
def progress_store(tmp_path):
    """ProgressStore writing into a temporary directory."""
    return ProgressStore(str(tmp_path / "checkpoints"), str(tmp_path / "output"))


@pytest.fixture
def job_store(progress_store):
    """JobStore persisting through the temporary progress store."""
    return JobStore(progress_store)


@pytest.fixture
def simple_epub(tmp_path):
    """Single-chapter EPUB file."""
    return Path(create_sample_epubs.create_simple_epub(str(tmp_path)))


@pytest.fixture
def multi_chapter_epub(tmp_path):
    """Three-chapter EPUB with manifest and NCX."""
    return Path(create_sample_epubs.create_multi_chapter_epub(str(tmp_path)))


@pytest.fixture
def no_manifest_epub(tmp_path):
    """Archive with OEBPS/text/ch01.html and ch02.html and no package document."""
    return Path(create_sample_epubs.create_no_manifest_epub(str(tmp_path)))


@pytest.fixture
def sample_pdf(tmp_path):
    """Two-page PDF with an outline."""
    return Path(create_sample_epubs.create_sample_pdf(str(tmp_path)))
