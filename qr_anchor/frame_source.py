"""
Frame sources: image directories and video files as streams of FrameBuffers.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Union

import cv2

from .data_types import FrameBuffer

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('*.jpg', '*.jpeg', '*.png', '*.bmp', '*.JPG', '*.JPEG', '*.PNG')


def find_images(directory: Union[str, Path]) -> List[Path]:
    """Sorted image files in a directory."""
    directory = Path(directory)
    image_paths = []
    for ext in IMAGE_EXTENSIONS:
        image_paths.extend(directory.glob(ext))
    return sorted({p.resolve() for p in image_paths})


def iter_image_frames(directory: Union[str, Path], frame_interval: float = 1.0) -> Iterator[FrameBuffer]:
    """Yield frames from the images in a directory, spaced frame_interval seconds apart."""
    for idx, path in enumerate(find_images(directory)):
        image = cv2.imread(str(path))
        if image is None:
            logger.warning("Skipping unreadable image: %s", path.name)
            continue
        yield FrameBuffer(image, timestamp=idx * frame_interval)


def iter_video_frames(path: Union[str, Path]) -> Iterator[FrameBuffer]:
    """Yield frames from a video file, timestamped by their position in the video."""
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise ValueError(f"Could not open video: {path}")
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            yield FrameBuffer(frame, timestamp=cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0)
    finally:
        cap.release()


def iter_frames(source: Union[str, Path], frame_interval: float = 1.0) -> Iterator[FrameBuffer]:
    """Frames from an image directory, a single image, or a video file."""
    source = Path(source)
    if not source.exists():
        raise FileNotFoundError(f"Frame source does not exist: {source}")

    if source.is_dir():
        return iter_image_frames(source, frame_interval)

    image = cv2.imread(str(source))
    if image is not None:
        return iter([FrameBuffer(image, timestamp=0.0)])

    return iter_video_frames(source)
