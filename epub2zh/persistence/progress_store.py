"""
File-based checkpoint store for resumable translation jobs.

Every completed segment is written to its own JSON file as soon as it is
translated, so a crash loses at most the segment in flight:

    {checkpoint_dir}/{job_id}_segment_001.json
    {checkpoint_dir}/{job_id}_segment_002.json
    {checkpoint_dir}/{job_id}_job.json          (job record cache)

Writes go to a temporary file first and are moved into place with
os.replace, so readers only ever see complete files.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

from epub2zh.config import CHECKPOINT_DIR, OUTPUT_DIR
from epub2zh.core.adapters import CheckpointSaveError, CheckpointLoadError
from epub2zh.core.models import TranslatedUnit, TranslationJob

logger = logging.getLogger(__name__)

UNIT_FILE_PATTERN = re.compile(r'^(?P<job_id>.+)_segment_(?P<number>\d+)\.json$')
UNIT_SEPARATOR = "\n\n"


@dataclass
class Checkpoint:
    """Persisted progress of one job.

    Attributes:
        last_completed_segment_id: Highest unit id on disk, 0 when none
        units: Readable units in segment order
    """
    last_completed_segment_id: int = 0
    units: List[TranslatedUnit] = field(default_factory=list)

    @property
    def completed_ids(self) -> List[int]:
        return [unit.segment_id for unit in self.units]

    @property
    def is_empty(self) -> bool:
        return not self.units


class ProgressStore:
    """
    Stores translated units and job records on the local filesystem.
    """

    def __init__(self, checkpoint_dir: str = CHECKPOINT_DIR, output_dir: str = OUTPUT_DIR):
        """
        Args:
            checkpoint_dir: Directory for unit and job record files
            output_dir: Directory for finalized text artifacts
        """
        self.checkpoint_dir = Path(checkpoint_dir)
        self.output_dir = Path(output_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def unit_path(self, job_id: str, segment_id: int) -> Path:
        return self.checkpoint_dir / f"{job_id}_segment_{segment_id:03d}.json"

    def job_path(self, job_id: str) -> Path:
        return self.checkpoint_dir / f"{job_id}_job.json"

    def text_output_path(self, job_id: str) -> Path:
        return self.output_dir / f"{job_id}_translated.txt"

    def _unit_files(self, job_id: str) -> List[tuple]:
        """(segment number, path) pairs for a job, sorted by number."""
        found = []
        for path in self.checkpoint_dir.glob(f"{job_id}_segment_*.json"):
            match = UNIT_FILE_PATTERN.match(path.name)
            if match and match.group('job_id') == job_id:
                found.append((int(match.group('number')), path))
        return sorted(found, key=lambda item: item[0])

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    async def append_unit(self, job_id: str, unit: TranslatedUnit) -> Path:
        """
        Durably write one translated unit.

        Raises:
            CheckpointSaveError: If the unit could not be written
        """
        path = self.unit_path(job_id, unit.segment_id)
        try:
            await self._write_atomic(path, json.dumps(unit.to_dict(), ensure_ascii=False, indent=2))
        except OSError as e:
            raise CheckpointSaveError(
                f"Could not write checkpoint for segment {unit.segment_id}: {e}",
                context={'job_id': job_id, 'path': str(path)}
            ) from e

        logger.debug(f"Saved unit {unit.segment_id} of job {job_id} to {path}")
        return path

    async def load_checkpoint(self, job_id: str) -> Checkpoint:
        """
        Read every unit file of a job in segment order.

        Unreadable files are skipped with a warning; their segments will be
        translated again.
        """
        checkpoint = Checkpoint()

        for number, path in self._unit_files(job_id):
            try:
                async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                    data = json.loads(await f.read())
                unit = TranslatedUnit.from_dict(data)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable checkpoint {path.name}: {e}")
                continue

            if unit.segment_id != number:
                logger.warning(
                    f"Checkpoint {path.name} holds segment {unit.segment_id}, using file number {number}"
                )
                unit.segment_id = number

            checkpoint.units.append(unit)
            checkpoint.last_completed_segment_id = max(checkpoint.last_completed_segment_id, number)

        return checkpoint

    def has_checkpoints(self, job_id: str) -> bool:
        return bool(self._unit_files(job_id))

    def last_completed_segment_id(self, job_id: str) -> int:
        """Highest segment number with a unit file on disk, 0 when there is none"""
        units = self._unit_files(job_id)
        return units[-1][0] if units else 0

    async def finalize(self, job_id: str, output_path: Optional[str] = None) -> str:
        """
        Concatenate all units in segment order into the job's text artifact.

        Safe to call repeatedly; checkpoints are never deleted here.

        Returns:
            The concatenated text
        """
        checkpoint = await self.load_checkpoint(job_id)
        text = UNIT_SEPARATOR.join(unit.translated_text for unit in checkpoint.units)

        target = Path(output_path) if output_path else self.text_output_path(job_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            await self._write_atomic(target, text)
        except OSError as e:
            raise CheckpointSaveError(
                f"Could not write translated text: {e}",
                context={'job_id': job_id, 'path': str(target)}
            ) from e

        logger.info(f"Finalized job {job_id}: {len(checkpoint.units)} units -> {target}")
        return text

    def delete_checkpoints(self, job_id: str) -> int:
        """Remove a job's unit files and job record. Returns the number of files removed."""
        removed = 0
        paths = [path for _, path in self._unit_files(job_id)]
        if self.job_path(job_id).exists():
            paths.append(self.job_path(job_id))

        for path in paths:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass

        logger.debug(f"Deleted {removed} checkpoint files for job {job_id}")
        return removed

    # ------------------------------------------------------------------
    # Job records
    # ------------------------------------------------------------------

    def save_job(self, job: TranslationJob):
        """Write the job record (synchronous, called from worker threads)."""
        path = self.job_path(job.job_id)
        tmp_path = path.with_name(path.name + '.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(job.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise CheckpointSaveError(
                f"Could not write job record: {e}",
                context={'job_id': job.job_id, 'path': str(path)}
            ) from e

    def load_job(self, job_id: str) -> Optional[TranslationJob]:
        """
        Read a job record.

        Raises:
            CheckpointLoadError: If the record exists but cannot be parsed
        """
        path = self.job_path(job_id)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return TranslationJob.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CheckpointLoadError(
                f"Could not read job record: {e}",
                context={'job_id': job_id, 'path': str(path)}
            ) from e

    def list_jobs(self) -> List[TranslationJob]:
        """All readable job records, oldest first."""
        jobs = []
        for path in self.checkpoint_dir.glob("*_job.json"):
            job_id = path.name[:-len("_job.json")]
            try:
                job = self.load_job(job_id)
            except CheckpointLoadError as e:
                logger.warning(f"Ignoring job record {path.name}: {e}")
                continue
            if job:
                jobs.append(job)
        return sorted(jobs, key=lambda j: j.created_at)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _write_atomic(path: Path, content: str):
        tmp_path = path.with_name(path.name + '.tmp')
        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(content)
        await aiofiles.os.replace(tmp_path, path)

