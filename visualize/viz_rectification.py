"""
Visualize Barcode Rectification

Standalone script to test and visualize QR detection and perspective
correction on still images.

Usage:
    python viz_rectification.py <image_directory | image>
"""

import sys
from pathlib import Path

import cv2
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

sys.path.append(str(Path(__file__).parent.parent))

from qr_anchor import FrameBuffer, PerspectiveCorrector, QRCodePatternDetector, Quadrilateral
from qr_anchor.frame_source import find_images
from qr_anchor.visualization import create_detection_panel


def create_summary_visualization(panel_paths, output_dir: Path):
    """Grid of all detection panels, saved as summary_grid.png."""
    if not panel_paths:
        print("No panels to summarize")
        return

    cols = 2
    rows = (len(panel_paths) + cols - 1) // cols
    fig, axes = plt.subplots(rows, cols, figsize=(16, 4 * rows), squeeze=False)

    for idx, panel_path in enumerate(panel_paths):
        ax = axes[idx // cols, idx % cols]
        img = cv2.cvtColor(cv2.imread(str(panel_path)), cv2.COLOR_BGR2RGB)
        ax.imshow(img)
        ax.set_title(panel_path.name.replace("_rectified.jpg", ""), fontsize=10)
        ax.axis('off')

    for idx in range(len(panel_paths), rows * cols):
        axes[idx // cols, idx % cols].axis('off')

    plt.tight_layout()
    summary_file = output_dir / "summary_grid.png"
    plt.savefig(summary_file, dpi=120, bbox_inches='tight')
    plt.close(fig)
    print(f"Summary grid saved: {summary_file}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python viz_rectification.py <image_directory | image>")
        sys.exit(1)

    target = Path(sys.argv[1])
    if not target.exists():
        print(f"Error: Path does not exist: {target}")
        sys.exit(1)

    if target.is_dir():
        image_paths = find_images(target)
        output_dir = target / "viz_rectification"
    else:
        image_paths = [target]
        output_dir = target.parent / "viz_rectification"

    output_dir.mkdir(exist_ok=True)

    detector = QRCodePatternDetector()
    corrector = PerspectiveCorrector()

    print(f"Found {len(image_paths)} image(s) to process\n")

    panel_paths = []
    for idx, image_path in enumerate(image_paths, 1):
        image = cv2.imread(str(image_path))
        if image is None:
            print(f"[{idx}/{len(image_paths)}] Skipping unreadable image: {image_path.name}")
            continue

        frame = FrameBuffer(image)
        observation = detector.detect(frame)
        quad, rectified = None, None
        if observation is not None:
            quad = Quadrilateral.from_normalized(observation.corners, frame.width, frame.height)
            rectified = corrector.correct(quad, frame)

        panel_path = output_dir / f"{image_path.stem}_rectified.jpg"
        cv2.imwrite(str(panel_path), create_detection_panel(image, quad, rectified))
        panel_paths.append(panel_path)

        if rectified is None:
            status = "no barcode" if observation is None else "rectification failed"
        else:
            status = f"{rectified.shape[1]}x{rectified.shape[0]} payload={observation.payload!r}"
        print(f"[{idx}/{len(image_paths)}] {image_path.name}: {status}. Saved {panel_path.name}")

    create_summary_visualization(panel_paths, output_dir)
    print(f"\nResults saved to: {output_dir}")


if __name__ == "__main__":
    main()
