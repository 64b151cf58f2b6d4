import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple, Union

from .metadata.assemble import MetadataAssembler
from .metadata.context import collect_sidecar_context
from .models import CaptureEvent, PipelineResult, SidecarContext, SinkContext, SinkResult
from .organization.rename import ScreenshotRenamer
from .policy import Policy
from .scanning.locator import ScreenshotLocator
from .sinks.json_sidecar import JsonSidecarWriter
from .sinks.png import PngMetadataWriter
from .sinks.xmp import XmpSidecarWriter
from .tags import PendingTags

SnapshotProvider = Callable[[Set[str]], Mapping[str, Any]]
PolicySource = Union[Policy, Callable[[], Policy]]


class MetadataPipeline:
    def __init__(self,
                 snapshot_provider: SnapshotProvider,
                 policy: PolicySource,
                 pending_tags: Optional[PendingTags] = None,
                 locator: Optional[ScreenshotLocator] = None,
                 max_workers: int = 1):
        self.snapshot_provider = snapshot_provider
        self._policy_source = policy
        self.pending_tags = pending_tags or PendingTags()
        self.locator = locator or ScreenshotLocator()
        self.assembler = MetadataAssembler()
        self.png_writer = PngMetadataWriter()
        self.xmp_writer = XmpSidecarWriter()
        self.json_writer = JsonSidecarWriter()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="screenshot-metadata")

    def current_policy(self) -> Policy:
        if isinstance(self._policy_source, Policy):
            return self._policy_source
        return self._policy_source()

    # --- Host Hooks ---

    def begin_capture(self, base_dir: Path) -> CaptureEvent:
        """Call right before the host saves; pins down what 'new' means for this capture."""
        return CaptureEvent(base_dir=base_dir, reference=self.locator.snapshot_reference(base_dir))

    def on_screenshot_saved(self, event: Union[CaptureEvent, Path]) -> "Future[PipelineResult]":
        """Schedules the run on the background worker and returns at once."""
        if not isinstance(event, CaptureEvent):
            event = CaptureEvent(base_dir=Path(event))
        return self._executor.submit(self.run, event)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    # --- Pipeline ---

    def run(self, event: CaptureEvent) -> PipelineResult:
        """
        Locate -> assemble -> rename -> sinks. Never raises: every failure
        is logged and reported in the returned PipelineResult.
        """
        try:
            logging.debug(f"Processing screenshot metadata for {event.base_dir}")
            screenshot = self.locator.locate(event.base_dir, event.reference)
            if screenshot is None:
                logging.warning("No screenshot file found to add metadata to")
                return PipelineResult(status="not_found")

            tags = self.pending_tags.consume()
            result = self.process(screenshot, self.current_policy(), tags=tags)
            if result.status == "empty":
                # Nothing was written, keep the tags for the next capture
                self.pending_tags.restore(tags)
            return result
        except Exception:
            logging.exception("Unexpected error in screenshot metadata processing")
            return PipelineResult(status="failed")

    def process(self,
                screenshot: Path,
                policy: Policy,
                tags: Optional[str] = None,
                rename: bool = True) -> PipelineResult:
        snapshot = self.snapshot_provider(policy.enabled_categories()) or {}
        metadata = self.assembler.assemble(snapshot, policy, pending_tags=tags)
        if not metadata:
            logging.warning(f"No metadata collected for {screenshot.name}")
            return PipelineResult(status="empty", screenshot=screenshot)

        if rename:
            renamer = ScreenshotRenamer(policy.rename_screenshots, policy.screenshot_name_template)
            screenshot = renamer.maybe_rename(screenshot, metadata)

        extended = self._sidecar_context(snapshot) if policy.wants_sidecar_context else None
        results = self.write_sinks(SinkContext(target=screenshot, metadata=metadata, extended=extended), policy)

        failed = [r.sink for r in results if not r.ok]
        if failed:
            logging.warning(f"Metadata for {screenshot.name} incomplete, failed sinks: {', '.join(failed)}")
        else:
            logging.info(f"Added metadata to screenshot: {screenshot.name}")
        return PipelineResult(status="done", screenshot=screenshot, sinks=results)

    def write_sinks(self, ctx: SinkContext, policy: Policy) -> List[SinkResult]:
        """Fans out to the enabled sinks; each outcome comes back as a SinkResult."""
        tasks: List[Tuple[str, Callable[[], Optional[Path]]]] = []
        if policy.write_png_metadata:
            tasks.append(('png', lambda: self._write_png(ctx)))
        if policy.write_xmp_sidecar:
            tasks.append(('xmp', lambda: self.xmp_writer.write(ctx.target, ctx.metadata)))
        if policy.write_json_sidecar:
            tasks.append(('json', lambda: self.json_writer.write(ctx.target, ctx.metadata, ctx.extended)))
        if not tasks:
            return []

        order = {name: i for i, (name, _) in enumerate(tasks)}
        results = []
        with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="metadata-sink") as executor:
            futures = [executor.submit(self._run_sink, name, fn) for name, fn in tasks]
            for future in as_completed(futures):
                results.append(future.result())
        return sorted(results, key=lambda r: order[r.sink])

    def _write_png(self, ctx: SinkContext) -> Path:
        self.png_writer.write_with_retry(ctx.target, ctx.metadata)
        return ctx.target

    def _run_sink(self, name: str, fn: Callable[[], Optional[Path]]) -> SinkResult:
        try:
            return SinkResult(sink=name, ok=True, path=fn())
        except Exception as e:
            logging.error(f"{name} sink failed: {e}")
            return SinkResult(sink=name, ok=False, reason=str(e))

    def _sidecar_context(self, snapshot: Mapping[str, Any]) -> Optional[SidecarContext]:
        try:
            return collect_sidecar_context(snapshot)
        except Exception as e:
            logging.debug(f"Could not collect sidecar context: {e}")
            return None
