import threading
from typing import Optional
from rich.console import Console
from comva.infrastructure.event_bus import EventBus
from comva.domain.events import (
    DiscoveryFinished, JobStarted, JobCompleted, JobSkipped, JobFailed, ProcessingFinished
)
from comva.domain.models import SkipReason

_SKIP_MESSAGES = {
    SkipReason.OUTPUT_EXISTS: "output already exists!",
    SkipReason.OUTPUT_CLAIMED: "output is written by another file in this run!",
    SkipReason.TEMP_EXISTS: "a temporary file from an earlier run is in the way!",
}

class ConsoleReporter:
    """Subscribes to EventBus and prints per-file status lines.

    Events arrive from worker threads; rich's Console serializes the writes,
    the counters are guarded by a lock.
    """

    def __init__(self, bus: EventBus, console: Optional[Console] = None, err_console: Optional[Console] = None):
        self.bus = bus
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self._lock = threading.Lock()
        self.completed = 0
        self.skipped = 0
        self.failed = 0
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(DiscoveryFinished, self.on_discovery_finished)
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobSkipped, self.on_job_skipped)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(ProcessingFinished, self.on_processing_finished)

    def on_discovery_finished(self, event: DiscoveryFinished):
        self.console.print(
            f"Starting compression of {event.files_found} files.. "
            f"(images: {event.images}, audio: {event.audio}, videos: {event.videos})",
            markup=False,
        )

    def on_job_started(self, event: JobStarted):
        self.console.print(f"Compressing {event.job.output_path}..", markup=False)

    def on_job_completed(self, event: JobCompleted):
        with self._lock:
            self.completed += 1

    def on_job_skipped(self, event: JobSkipped):
        message = _SKIP_MESSAGES.get(event.job.skip_reason)
        if message is None:
            # Media type not enabled, nothing to tell the operator
            return
        with self._lock:
            self.skipped += 1
        self.console.print(f"Skipped {event.job.entry.path}, {message}", style="yellow", markup=False)

    def on_job_failed(self, event: JobFailed):
        with self._lock:
            self.failed += 1
        self.err_console.print(
            f"Compression of {event.job.input_path} failed:\n{event.error_message}",
            style="red",
            markup=False,
        )

    def on_processing_finished(self, event: ProcessingFinished):
        with self._lock:
            summary = f"{self.completed} compressed, {self.skipped} skipped, {self.failed} failed"
        self.console.print(f"Operation completed. ({summary})", style="bold green", markup=False)
