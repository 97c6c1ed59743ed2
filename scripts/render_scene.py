#!/usr/bin/env python3
"""Render a scene file into a sequence of light spot images.

CLI tool to render a scene.v1 YAML file (canvas, view transform, spots,
export format, frame sequence) into image files.

Usage:
    # Render the configured sequence
    python scripts/render_scene.py --scene configs/scene.v1.yaml --output_dir outputs/scene

    # Override format and frame count
    python scripts/render_scene.py --scene configs/scene.v1.yaml --output_dir outputs/raw \
        --format raw_linear_12bpp_le --frames 10

Outputs:
    - frame_NNNN.png / frame_NNNN.raw: one file per frame
    - metadata.yaml: scene name, format, dimensions, render time, file list
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import yaml
from pydantic import ValidationError

from spotfield.renderer import EncoderError, ImageFormat, scene as scene_mod
from spotfield.utils import fs, logging_config, validators


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a light spot scene into image files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--scene',
        type=str,
        required=True,
        help='Path to scene.v1 YAML file'
    )
    parser.add_argument(
        '--output_dir',
        type=str,
        required=True,
        help='Output directory for frames and metadata'
    )
    parser.add_argument(
        '--format',
        type=str,
        default=None,
        choices=[f.value for f in ImageFormat],
        help='Image format (default: scene output.format)'
    )
    parser.add_argument(
        '--frames',
        type=int,
        default=None,
        help='Number of frames (default: scene sequence.frames)'
    )
    parser.add_argument(
        '--log_level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )
    parser.add_argument(
        '--log_file',
        type=str,
        default=None,
        help='Optional log file (JSON lines)'
    )

    args = parser.parse_args(argv)
    if args.frames is not None and args.frames < 1:
        parser.error(f"--frames must be >= 1, got {args.frames}")
    return args


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    logging_config.setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json=args.log_file is not None,
        quiet_libs=['PIL'],
        context={'app': 'render'}
    )
    logger = logging.getLogger(__name__)

    try:
        scene = validators.load_scene_config(args.scene)
    except (FileNotFoundError, yaml.YAMLError, ValidationError) as e:
        logger.error(f"Invalid scene {args.scene}: {e}")
        return 1

    fmt = ImageFormat.parse(args.format or scene.output.format)
    n_frames = args.frames or scene.sequence.frames

    output_dir = fs.ensure_dir(args.output_dir)
    logger.info(f"Output directory: {output_dir}")
    logger.info(
        f"Scene '{scene.name}': {scene.canvas.width}x{scene.canvas.height} px, "
        f"{len(scene.spots)} spot(s), {n_frames} frame(s), format {fmt.value}"
    )

    logging_config.push_context(scene=scene.name)

    written = []
    start_time = time.time()
    try:
        for index, data in scene_mod.render_frames(scene, fmt=fmt, frames=n_frames):
            frame_path = Path(output_dir) / f"frame_{index:04d}{fmt.extension}"
            fs.atomic_write_bytes(frame_path, data)
            written.append(frame_path.name)
            logger.info(f"Wrote {frame_path.name} ({len(data)} bytes)")
    except EncoderError as e:
        logger.error(f"Export failed: {e}")
        return 1
    render_time = time.time() - start_time

    logger.info(f"Rendered {len(written)} frame(s) in {render_time:.3f}s")

    metadata = {
        'scene': scene.name,
        'scene_file': str(args.scene),
        'format': fmt.value,
        'canvas_px': [scene.canvas.width, scene.canvas.height],
        'num_spots': len(scene.spots),
        'num_frames': len(written),
        'drift_px': list(scene.sequence.drift),
        'render_time_s': float(render_time),
        'frames': written,
    }
    metadata_path = Path(output_dir) / 'metadata.yaml'
    fs.atomic_yaml_dump(metadata, metadata_path)
    logger.info(f"Saved metadata: {metadata_path}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
