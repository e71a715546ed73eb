"""
QR Marker Anchoring Pipeline

Main script that runs a marker-placement session over a frame source.
Process: Barcode Detection -> Perspective Correction -> Reference Target ->
Anchor Placement -> Base/Movable Markers -> Separation Vector

Usage:
    python pipeline.py <image_directory | image | video> [--output <output_dir>] [--visualize]
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2
import numpy as np

from qr_anchor import (AnchorSession, BarcodeDetector, ImageAnchorTracker,
                       PerspectiveCorrector, QRCodePatternDetector, Quadrilateral)
from qr_anchor.frame_source import iter_frames
from qr_anchor.geometry import euler_angles
from qr_anchor.visualization import create_detection_panel, create_marker_figure


def save_detection_panel(frame, pattern_detector, corrector, out_path: Path):
    """Write a detection / rectification panel for one frame."""
    observation = pattern_detector.detect(frame)
    quad, rectified = None, None
    if observation is not None:
        quad = Quadrilateral.from_normalized(observation.corners, frame.width, frame.height)
        rectified = corrector.correct(quad, frame)
    panel = create_detection_panel(frame.to_bgr(), quad, rectified)
    cv2.imwrite(str(out_path), panel)


def report_separation(result):
    if result is not None:
        print(f"Separation published: {np.round(result.vector, 3)}")


def print_session_summary(state):
    """Print the placed markers and the separation result."""
    print("\n" + "=" * 60)
    print("MARKER SUMMARY")
    print("=" * 60)

    for role, anchor in (('Base', state.base), ('Movable', state.movable)):
        if anchor is None:
            print(f"{role:<10} not placed")
            continue
        pos = anchor.position
        pitch, yaw, roll = np.degrees(euler_angles(anchor.transform))
        print(f"{role:<10} [{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}] m | "
              f"pitch {pitch:.1f} yaw {yaw:.1f} roll {roll:.1f} deg")

    if state.separation is not None:
        vec = state.separation.vector
        print(f"\nSeparation: [{vec[0]:.3f}, {vec[1]:.3f}, {vec[2]:.3f}] m "
              f"(distance {state.separation.distance:.3f} m)")
    else:
        print("\nSeparation: not available (need both markers)")

    if state.ignored_placements:
        print(f"Ignored placements: {state.ignored_placements}")


def main():
    parser = argparse.ArgumentParser(description='QR Marker Anchoring Pipeline')
    parser.add_argument('source', type=str, help='Image directory, image file or video file')
    parser.add_argument('--output', '-o', type=str, help='Output directory (default: <source>_results)')
    parser.add_argument('--visualize', '-v', action='store_true', help='Generate visualization images')
    parser.add_argument('--frame-interval', type=float, default=1.0,
                        help='Seconds between images of an image directory (default: 1.0)')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    source = Path(args.source)
    if not source.exists():
        print(f"Error: Source does not exist: {source}")
        sys.exit(1)

    if args.output:
        output_dir = Path(args.output)
    else:
        output_dir = source.parent / f"{source.stem}_results"

    if args.visualize:
        output_dir.mkdir(exist_ok=True, parents=True)

    pattern_detector = QRCodePatternDetector()
    corrector = PerspectiveCorrector()
    session = AnchorSession(
        detector=BarcodeDetector(pattern_detector=pattern_detector, corrector=corrector),
        tracker=ImageAnchorTracker(),
    )
    session.results.subscribe(report_separation)

    n_frames = 0
    try:
        for idx, frame in enumerate(iter_frames(source, args.frame_interval), 1):
            n_frames += 1
            outcomes = session.process_frame(frame)
            session.detector.wait_idle()

            for outcome in outcomes:
                print(f"[frame {idx}] {outcome.value}")

            if args.visualize:
                save_detection_panel(frame, pattern_detector, corrector,
                                     output_dir / f"frame_{idx:04d}_detection.jpg")
    finally:
        session.close()

    if n_frames == 0:
        print("No frames found!")
        sys.exit(1)

    state = session.snapshot()
    print(f"\nProcessed {n_frames} frame(s)")
    print_session_summary(state)

    if args.visualize:
        fig = create_marker_figure(state.base, state.movable, state.separation)
        html_path = output_dir / "markers_3d.html"
        fig.write_html(str(html_path))
        print(f"\nDone! Results saved to: {output_dir}")


if __name__ == "__main__":
    main()
