"""Pipeline orchestrator for the in-place media compression run.

Coordinates indexing, the worker pool and the per-file replace protocol.
Uses the EventBus to report progress so the pipeline layer never prints.

Per-file protocol (`process_entry`):
- resolve the target extension for the entry's media type (skip if none)
- claim the output path for this run; ownership is fixed before the pool
  starts: in-place entries own their own path, then first claimant in index
  order. A job that skips gives its claim back
- in-place conversion: move the source aside to `<name>.tmp` first
- never overwrite an output file that already exists
- compress through the codec adapter for the media type
- on success apply the retention policy (delete, `.backup`, or keep)
- on failure report and leave any `.tmp` input on disk untouched

Every failure inside a job, filesystem mutations included, ends that job
only; other jobs and the run continue.
"""

import logging
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
from comva.config.models import AppConfig
from comva.domain.errors import ComvaError, FileOperationError
from comva.domain.events import (
    DiscoveryStarted, DiscoveryFinished, JobStarted, JobCompleted, JobSkipped, JobFailed, ProcessingFinished
)
from comva.domain.models import CompressionJob, IndexEntry, JobStatus, MediaType, Retention, SkipReason
from comva.infrastructure.event_bus import EventBus
from comva.infrastructure.ffmpeg import FFmpegAdapter
from comva.infrastructure.file_scanner import FileScanner
from comva.infrastructure.image_codec import ImageCodecAdapter
from comva.pipeline.worker_pool import WorkerPool

TEMP_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".backup"


def temp_path_for(path: Path) -> Path:
    """`photo.jpg` -> `photo.jpg.tmp`"""
    return path.with_name(path.name + TEMP_SUFFIX)


def backup_path_for(temp_path: Path) -> Path:
    """`photo.jpg.tmp` -> `photo.jpg.backup`"""
    return temp_path.with_suffix(BACKUP_SUFFIX)


class CompressionTask:
    """One schedulable unit of work: an index entry plus the run's options snapshot."""

    def __init__(self, orchestrator: "Orchestrator", entry: IndexEntry, options: AppConfig):
        self.orchestrator = orchestrator
        self.entry = entry
        self.options = options

    def __call__(self) -> None:
        self.orchestrator.process_entry(self.entry, self.options)

    def __repr__(self) -> str:
        return f"CompressionTask({self.entry.media_type.label}, {self.entry.path})"


class Orchestrator:
    """Media compression pipeline orchestrator.

    Args:
        config: AppConfig with the general settings and per-media-type targets.
        event_bus: EventBus for publishing discovery and job lifecycle events.
        file_scanner: FileScanner building the index.
        image_adapter: in-process image codec (initialized once per run).
        ffmpeg_adapter: ffmpeg wrapper used for audio and video.
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        file_scanner: FileScanner,
        image_adapter: ImageCodecAdapter,
        ffmpeg_adapter: FFmpegAdapter,
    ):
        self.config = config
        self.event_bus = event_bus
        self.file_scanner = file_scanner
        self.image_adapter = image_adapter
        self.ffmpeg_adapter = ffmpeg_adapter
        self.logger = logging.getLogger(__name__)

        # Output path -> source path of the job that owns it in the current run
        self._claims: Dict[Path, Path] = {}
        self._claims_lock = threading.Lock()

        self._jobs: List[CompressionJob] = []
        self._jobs_lock = threading.Lock()

    # -- filesystem primitives -------------------------------------------------

    def _claim_output(self, output_path: Path, source_path: Path) -> bool:
        with self._claims_lock:
            owner = self._claims.setdefault(output_path, source_path)
            return owner == source_path

    def _release_claim(self, output_path: Path, source_path: Path):
        with self._claims_lock:
            if self._claims.get(output_path) == source_path:
                del self._claims[output_path]

    def _assign_claims(self, entries: List[IndexEntry], options: AppConfig):
        """Fixes output ownership before any job runs.

        In-place entries own their own path; the remaining entries claim in
        index order. The outcome does not depend on worker scheduling.
        """
        resolved = []
        for entry in entries:
            try:
                resolution = self._resolve_output(entry, options)
            except ValueError:
                continue
            if resolution is not None:
                resolved.append((entry.path, resolution[0]))
        with self._claims_lock:
            self._claims.clear()
            for source_path, output_path in resolved:
                if output_path == source_path:
                    self._claims[output_path] = source_path
            for source_path, output_path in resolved:
                self._claims.setdefault(output_path, source_path)

    def _rename(self, source: Path, destination: Path, message: str):
        try:
            source.rename(destination)
        except OSError as e:
            raise FileOperationError(f"{message} {source} -> {destination}: {e}", source) from e

    def _remove(self, path: Path, message: str):
        try:
            path.unlink()
        except OSError as e:
            raise FileOperationError(f"{message} {path}: {e}", path) from e

    # -- per-file protocol -----------------------------------------------------

    def _record(self, job: CompressionJob) -> CompressionJob:
        with self._jobs_lock:
            self._jobs.append(job)
        return job

    def _skip(self, job: CompressionJob, reason: SkipReason) -> CompressionJob:
        job.status = JobStatus.SKIPPED
        job.skip_reason = reason
        if reason == SkipReason.NOT_CONFIGURED:
            self.logger.debug(f"JOB_SKIP: {job.entry.path} reason={reason.value}")
        else:
            self.logger.info(f"JOB_SKIP: {job.entry.path} reason={reason.value} output={job.output_path}")
        self.event_bus.publish(JobSkipped(job=job))
        return self._record(job)

    def _fail(self, job: CompressionJob, error: Exception) -> CompressionJob:
        job.status = JobStatus.FAILED
        job.error_message = str(error)
        self.logger.error(f"JOB_FAIL: {job.input_path}: {error}")
        if job.overwritten_in_place and job.input_path and job.input_path.exists():
            self.logger.warning(f"JOB_FAIL: original left at {job.input_path}")
        self.event_bus.publish(JobFailed(job=job, error_message=job.error_message))
        return self._record(job)

    def _compress(self, job: CompressionJob, options: AppConfig):
        if job.entry.media_type == MediaType.IMAGE:
            self.image_adapter.compress(job.input_path, job.output_path, quality=options.general.quality)
        else:
            self.ffmpeg_adapter.compress(job.input_path, job.output_path, job.target_extension)

    def _apply_retention(self, job: CompressionJob, options: AppConfig):
        if not options.general.keep_originals:
            self._remove(job.input_path, "Failed to remove file")
            job.retention = Retention.DELETED
        elif job.overwritten_in_place:
            backup_path = backup_path_for(job.input_path)
            if backup_path.exists() or backup_path.is_symlink():
                raise FileOperationError(f"Backup already exists, kept {job.input_path}: {backup_path}", backup_path)
            self._rename(job.input_path, backup_path, "Failed to rename input to backup.")
            job.input_path = backup_path
            job.retention = Retention.BACKED_UP
        else:
            job.retention = Retention.KEPT

    def _resolve_output(self, entry: IndexEntry, options: AppConfig) -> Optional[Tuple[Path, str]]:
        """Output path and extension for entry, or None if its media type is not enabled."""
        target = options.targets.for_media_type(entry.media_type)
        if target is None:
            return None
        output_ext = target.extension or entry.path.suffix[1:]
        if not output_ext:
            raise ValueError(f"No extension to keep for {entry.path}")
        return entry.path.with_suffix(f".{output_ext}"), output_ext

    def process_entry(self, entry: IndexEntry, options: Optional[AppConfig] = None) -> CompressionJob:
        """Runs the replace protocol for one index entry and returns the finished job."""
        options = options or self.config
        job = CompressionJob(entry=entry, input_path=entry.path)

        target = options.targets.for_media_type(entry.media_type)
        if target is None:
            return self._skip(job, SkipReason.NOT_CONFIGURED)

        source_path = entry.path
        start_time = time.monotonic()
        try:
            output_path, output_ext = self._resolve_output(entry, options)
            job.output_path = output_path
            job.target_extension = output_ext

            if not self._claim_output(output_path, source_path):
                return self._skip(job, SkipReason.OUTPUT_CLAIMED)

            if output_path == source_path:
                temp_path = temp_path_for(source_path)
                if temp_path.exists() or temp_path.is_symlink():
                    self._release_claim(output_path, source_path)
                    return self._skip(job, SkipReason.TEMP_EXISTS)
                self._rename(source_path, temp_path, "Failed to rename input path.")
                job.input_path = temp_path
                job.overwritten_in_place = True

            if output_path.exists():
                self._release_claim(output_path, source_path)
                return self._skip(job, SkipReason.OUTPUT_EXISTS)

            job.status = JobStatus.PROCESSING
            self.logger.info(
                f"JOB_START: {source_path} -> {output_path} "
                f"(type={entry.media_type.label}, in_place={job.overwritten_in_place})"
            )
            self.event_bus.publish(JobStarted(job=job))

            self._compress(job, options)
            self._apply_retention(job, options)
        except ComvaError as e:
            return self._fail(job, e)
        except Exception as e:
            # Unexpected, but still confined to this file
            self.logger.exception(f"Exception processing {source_path.name}")
            return self._fail(job, e)

        job.status = JobStatus.COMPLETED
        elapsed = time.monotonic() - start_time
        self.logger.info(
            f"JOB_DONE: {output_path} retention={job.retention.value} elapsed={elapsed:.2f}s"
        )
        self.event_bus.publish(JobCompleted(job=job))
        return self._record(job)

    # -- run -------------------------------------------------------------------

    def run(self, root_dir: Union[str, Path]) -> List[CompressionJob]:
        """Indexes root_dir and compresses every entry on the worker pool.

        IndexingError propagates before any file is touched. Per-file failures
        never propagate; they are reported through JobFailed events.
        """
        root_dir = Path(root_dir)
        self.logger.info(f"Discovery started: {root_dir}")
        self.event_bus.publish(DiscoveryStarted(directory=root_dir))

        entries = self.file_scanner.index(root_dir)
        counts = Counter(entry.media_type for entry in entries)
        self.logger.info(
            f"Discovery finished: found={len(entries)}, images={counts[MediaType.IMAGE]}, "
            f"audio={counts[MediaType.AUDIO]}, videos={counts[MediaType.VIDEO]}"
        )
        self.event_bus.publish(DiscoveryFinished(
            files_found=len(entries),
            images=counts[MediaType.IMAGE],
            audio=counts[MediaType.AUDIO],
            videos=counts[MediaType.VIDEO],
        ))

        # Snapshot so every job sees the same options for the whole run
        options = self.config.model_copy(deep=True)
        self._assign_claims(entries, options)
        with self._jobs_lock:
            self._jobs = []

        self.image_adapter.initialize()
        try:
            with WorkerPool(options.general.threads) as pool:
                for entry in entries:
                    pool.submit(CompressionTask(self, entry, options))
        finally:
            self.image_adapter.shutdown()

        with self._jobs_lock:
            jobs = list(self._jobs)
        statuses = Counter(job.status for job in jobs)
        self.logger.info(
            f"All files processed: completed={statuses[JobStatus.COMPLETED]}, "
            f"skipped={statuses[JobStatus.SKIPPED]}, failed={statuses[JobStatus.FAILED]}"
        )
        self.event_bus.publish(ProcessingFinished(
            completed=statuses[JobStatus.COMPLETED],
            skipped=statuses[JobStatus.SKIPPED],
            failed=statuses[JobStatus.FAILED],
        ))
        return jobs
