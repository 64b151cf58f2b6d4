import os
import time

import pytest

from screenshot_metadata.models import FileSnapshot
from screenshot_metadata.scanning.locator import ScreenshotLocator
from screenshot_metadata.scanning.stability import is_file_stable


def no_sleep(seconds):
    pass


def fast_locator(**kwargs):
    kwargs.setdefault('probe', lambda p: True)
    kwargs.setdefault('sleep', no_sleep)
    kwargs.setdefault('fallback_dirs', [])
    return ScreenshotLocator(**kwargs)


def test_stable_file(tmp_path):
    p = tmp_path / "a.png"
    p.write_bytes(b"data")
    assert is_file_stable(p, sleep=no_sleep)


def test_empty_or_missing_file_is_not_stable(tmp_path):
    p = tmp_path / "a.png"
    assert not is_file_stable(p, sleep=no_sleep)
    p.write_bytes(b"")
    assert not is_file_stable(p, sleep=no_sleep)


def test_growing_file_is_not_stable(tmp_path):
    p = tmp_path / "a.png"
    p.write_bytes(b"part")

    def still_writing(seconds):
        with p.open("ab") as f:
            f.write(b"more")

    assert not is_file_stable(p, sleep=still_writing)


def test_locate_picks_greatest_name_and_skips_hidden(game_dir):
    shots = game_dir / "screenshots"
    (shots / "2024-05-01_10.00.00.png").write_bytes(b"x")
    (shots / "2024-05-01_11.00.00.png").write_bytes(b"x")
    (shots / ".2024-05-01_12.00.00.png").write_bytes(b"x")
    (shots / "2024-05-01_13.00.00.jpg").write_bytes(b"x")

    found = fast_locator().locate(game_dir)
    assert found == shots / "2024-05-01_11.00.00.png"


def test_locate_ignores_files_older_than_reference(game_dir):
    shots = game_dir / "screenshots"
    old = shots / "2024-05-01_10.00.00.png"
    old.write_bytes(b"x")
    locator = fast_locator(max_attempts=2)
    ref = locator.snapshot_reference(game_dir)

    assert locator.locate(game_dir, ref) is None

    new = shots / "2024-05-01_10.00.01.png"
    new.write_bytes(b"y")
    assert locator.locate(game_dir, ref) == new


def test_locate_same_name_newer_mtime(game_dir):
    shot = game_dir / "screenshots" / "shot.png"
    shot.write_bytes(b"x")
    os.utime(shot, (1000, 1000))
    ref = FileSnapshot.of(shot)

    os.utime(shot, (2000, 2000))
    assert fast_locator().locate(game_dir, ref) == shot


def test_locate_waits_for_file_to_stabilize(game_dir):
    target = game_dir / "screenshots" / "screenshot_2.png"
    probes = []
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        if not target.exists():
            target.write_bytes(b"partial")

    def probe(path):
        probes.append(path)
        return len(probes) >= 2

    found = fast_locator(probe=probe, sleep=sleep).locate(game_dir)

    assert found == target
    assert probes == [target, target]
    # first poll saw nothing, second saw an unstable file
    assert len(sleeps) == 2


def test_locate_backoff_is_capped(game_dir):
    sleeps = []
    locator = fast_locator(max_attempts=5, initial_sleep=0.1, backoff=1.5, max_sleep=0.2,
                           sleep=sleeps.append)
    assert locator.locate(game_dir) is None
    assert sleeps == pytest.approx([0.1, 0.15, 0.2, 0.2])


def test_locate_falls_back_to_secondary_dirs(game_dir, tmp_path):
    downloads = tmp_path / "Downloads"
    downloads.mkdir()
    stray = downloads / "capture.png"
    stray.write_bytes(b"x")

    locator = fast_locator(max_attempts=2, fallback_dirs=[downloads])
    assert locator.locate(game_dir) == stray


def test_fallback_skips_files_older_than_cutoff(game_dir, tmp_path):
    downloads = tmp_path / "Downloads"
    downloads.mkdir()
    stale = downloads / "old.png"
    stale.write_bytes(b"x")
    old = time.time() - 3600
    os.utime(stale, (old, old))

    locator = fast_locator(max_attempts=1, fallback_dirs=[downloads])
    assert locator.locate(game_dir) is None


def test_unstable_candidate_is_never_returned(game_dir):
    (game_dir / "screenshots" / "a.png").write_bytes(b"x")
    locator = fast_locator(max_attempts=3, probe=lambda p: False)
    assert locator.locate(game_dir) is None


def test_snapshot_reference(game_dir):
    locator = fast_locator()
    assert locator.snapshot_reference(game_dir) is None

    shot = game_dir / "screenshots" / "b.png"
    (game_dir / "screenshots" / "a.png").write_bytes(b"x")
    shot.write_bytes(b"xyz")
    ref = locator.snapshot_reference(game_dir)
    assert ref.path == shot
    assert ref.size == 3
