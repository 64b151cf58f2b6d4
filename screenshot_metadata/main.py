import argparse
import json
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from . import config
from .core import MetadataPipeline
from .exceptions import ScreenshotNotFoundError
from .models import CaptureEvent, PipelineResult
from .organization.rename import render_preview
from .policy import Policy
from .scanning.locator import ScreenshotLocator


def setup_logging(game_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the game directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    game_dir.mkdir(parents=True, exist_ok=True)
    log_file = game_dir / config.LOG_FILE_NAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(threadName)s %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Screenshot Metadata: embed game state into screenshots")

    p.add_argument("game_dir", type=Path, help="Game directory (screenshots live in <game_dir>/screenshots)")
    p.add_argument("--snapshot", type=Path, default=None, help="JSON file with the game state snapshot")
    p.add_argument("--policy", type=Path, default=None,
                   help=f"Policy file (default: game_dir/config/{config.POLICY_FILE_NAME})")
    p.add_argument("--tags", type=str, default=None, help="Comma-separated tags for this capture")
    p.add_argument("--backfill", action="store_true", help="Annotate every existing screenshot instead of the newest")
    p.add_argument("--preview", type=str, default=None, metavar="TEMPLATE",
                   help="Print the file name a template would produce and exit")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def load_snapshot(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not hold a JSON object")
    return data


def capture(pipeline: MetadataPipeline, game_dir: Path, tags) -> PipelineResult:
    """Runs one capture event on the background worker and waits for it."""
    pipeline.pending_tags.set(tags)
    result = pipeline.on_screenshot_saved(CaptureEvent(base_dir=game_dir)).result()
    if result.status == "not_found":
        raise ScreenshotNotFoundError(f"No screenshot found in {game_dir / config.SCREENSHOTS_DIR}")
    return result


def backfill(pipeline: MetadataPipeline, game_dir: Path, tags) -> int:
    """Annotates every screenshot already on disk. Files keep their names."""
    shots = pipeline.locator.list_screenshots(game_dir / config.SCREENSHOTS_DIR)
    if not shots:
        raise ScreenshotNotFoundError(f"No screenshots found in {game_dir / config.SCREENSHOTS_DIR}")

    policy = pipeline.current_policy()
    failed = 0
    for shot in tqdm(shots, desc="Annotating"):
        result = pipeline.process(shot, policy, tags=tags, rename=False)
        if not result.ok:
            failed += 1

    logging.info(f"Backfill complete. {len(shots) - failed}/{len(shots)} screenshots fully annotated.")
    return 1 if failed else 0


def main(argv=None):
    args = parse_args(argv)

    if args.preview is not None:
        print(render_preview(args.preview))
        return 0

    game_dir = args.game_dir.resolve()
    setup_logging(game_dir, args.verbose)

    if args.snapshot is None:
        logging.error("--snapshot is required unless --preview is given")
        return 2

    try:
        snapshot = load_snapshot(args.snapshot)
    except (OSError, ValueError) as e:
        logging.error(f"Could not read snapshot {args.snapshot}: {e}")
        return 1

    policy_path = args.policy or game_dir / "config" / config.POLICY_FILE_NAME
    policy = Policy.load(policy_path)

    pipeline = MetadataPipeline(lambda categories: snapshot, policy, locator=ScreenshotLocator())
    try:
        with pipeline:
            if args.backfill:
                return backfill(pipeline, game_dir, args.tags)
            result = capture(pipeline, game_dir, args.tags)
    except ScreenshotNotFoundError as e:
        logging.error(str(e))
        return 1

    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
