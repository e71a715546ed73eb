import cv2
import numpy as np
import pytest

from qr_anchor.frame_source import find_images, iter_frames


def write_images(directory, count):
    for i in range(count):
        cv2.imwrite(str(directory / f"img_{i:02d}.png"), np.full((24, 32, 3), i * 10, dtype=np.uint8))


def test_find_images_sorted_and_filtered(tmp_path):
    write_images(tmp_path, 3)
    (tmp_path / "notes.txt").write_text("not an image")

    names = [p.name for p in find_images(tmp_path)]

    assert names == ["img_00.png", "img_01.png", "img_02.png"]


def test_image_directory_frames_are_timestamped(tmp_path):
    write_images(tmp_path, 3)

    frames = list(iter_frames(tmp_path, frame_interval=0.5))

    assert [f.timestamp for f in frames] == [0.0, 0.5, 1.0]
    assert frames[2].pixels[0, 0, 0] == 20
    assert (frames[0].width, frames[0].height) == (32, 24)


def test_single_image_source(tmp_path):
    write_images(tmp_path, 1)

    frames = list(iter_frames(tmp_path / "img_00.png"))

    assert len(frames) == 1
    assert frames[0].timestamp == 0.0


def test_missing_source_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        iter_frames(tmp_path / "missing")


def test_unreadable_file_yields_no_frames(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"not a video")

    try:
        frames = list(iter_frames(path))
    except ValueError:
        frames = []

    assert frames == []


def test_video_frames(tmp_path):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*'MJPG'), 10.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("No MJPG video writer available")
    for i in range(5):
        writer.write(np.full((48, 64, 3), i * 40, dtype=np.uint8))
    writer.release()

    frames = list(iter_frames(path))

    assert len(frames) == 5
    assert frames[0].width == 64
    timestamps = [f.timestamp for f in frames]
    assert timestamps == sorted(timestamps)
