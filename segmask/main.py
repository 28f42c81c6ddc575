import argparse
import logging
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="segmask")
    parser.add_argument("--detections", type=str, help="Path to detection output (.npy), shape (1, 4+nc+M, anchors)")
    parser.add_argument("--protos", type=str, help="Path to mask prototype output (.npy), shape (1, M, mh, mw)")
    parser.add_argument("--output", type=str, help="Path to write the composited canvas (.npy)")
    parser.add_argument(
        "--image-size",
        type=int,
        nargs=2,
        metavar=("W", "H"),
        help="Original image size the boxes and masks are mapped to",
    )
    parser.add_argument(
        "--input-size",
        type=int,
        nargs=2,
        metavar=("W", "H"),
        default=[640, 640],
        help="Model input size (default: 640 640)",
    )
    parser.add_argument("--class-names", type=str, default=None, help="Comma separated class names")
    parser.add_argument(
        "--layout",
        type=str,
        default="auto",
        choices=["auto", "channels_first", "anchors_first"],
        help="Detection output axis order (auto guesses from class names or axis sizes)",
    )
    parser.add_argument(
        "--resize-mode",
        type=str,
        default="stretch",
        choices=["stretch", "letterbox"],
        help="How the image was fitted into the model input",
    )
    parser.add_argument("--confidence", type=float, default=0.23)
    parser.add_argument("--iou", type=float, default=0.7)
    parser.add_argument("--pixel-confidence", type=float, default=0.65)
    parser.add_argument("--label", type=int, default=-1, help="Only keep this class index (-1 keeps all)")
    parser.add_argument("--scale-bb", type=float, default=1.0, help="Scale boxes about their centre before masking")
    parser.add_argument(
        "--crop-to-box",
        default=True,
        action=argparse.BooleanOptionalAction,
        help="Mask only inside each box (disable for full-canvas masks)",
    )
    parser.add_argument(
        "--class-agnostic",
        default=False,
        action=argparse.BooleanOptionalAction,
        help="Suppress overlaps across classes instead of per class",
    )
    parser.add_argument("--rgb", default=False, action=argparse.BooleanOptionalAction, help="Write an RGBA canvas")
    parser.add_argument(
        "--soft",
        default=False,
        action=argparse.BooleanOptionalAction,
        help="Use mask probability as canvas alpha instead of flat packed bits",
    )
    parser.add_argument("--workers", type=int, default=1, help="Object-level worker threads (0 = physical cores)")
    parser.add_argument("--benchmark", action="store_true", help="Time the resample backends and exit")
    parser.add_argument("--crop-count", type=int, default=64, help="Crops per benchmark run")
    parser.add_argument("--runs", type=int, default=3, help="Benchmark repetitions (median is reported)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.benchmark:
        from segmask.benchmark import run_benchmark_cli

        run_benchmark_cli(args)
        return

    import numpy as np

    from segmask.detection.suppression import SuppressionPolicy
    from segmask.model_shape import ModelShape
    from segmask.pipeline import SegmentationPipeline

    for flag in ("detections", "protos", "output", "image_size"):
        if getattr(args, flag) is None:
            raise ValueError(f"--{flag.replace('_', '-')} is required")

    detections_path = Path(args.detections)
    if not detections_path.exists():
        raise FileNotFoundError(str(detections_path))
    protos_path = Path(args.protos)
    if not protos_path.exists():
        raise FileNotFoundError(str(protos_path))

    workers = int(args.workers)
    if workers < 0:
        raise ValueError("--workers must be >= 0")
    if workers == 0:
        from segmask.cpu_features import default_worker_count

        workers = default_worker_count()

    detections = np.load(detections_path)
    protos = np.load(protos_path)
    class_names = [n.strip() for n in args.class_names.split(",")] if args.class_names else None
    shape = ModelShape.from_output_shapes(
        detections.shape,
        protos.shape,
        input_size=(int(args.input_size[0]), int(args.input_size[1])),
        class_names=class_names,
        layout=str(args.layout),
    )

    pipeline = SegmentationPipeline(
        shape,
        max_workers=workers,
        suppression=SuppressionPolicy.CLASS_AGNOSTIC if args.class_agnostic else SuppressionPolicy.CLASS_SCOPED,
        resize_mode=str(args.resize_mode),
    )
    width, height = (int(args.image_size[0]), int(args.image_size[1]))
    objects = pipeline.process_outputs(
        detections,
        protos,
        (width, height),
        confidence=float(args.confidence),
        iou=float(args.iou),
        pixel_confidence=float(args.pixel_confidence),
        label_index=int(args.label),
        crop_to_box=bool(args.crop_to_box),
        scale_bb=float(args.scale_bb),
        keep_alpha=bool(args.soft),
    )
    canvas = pipeline.composite(
        objects,
        width,
        height,
        rgb=bool(args.rgb),
        soft=bool(args.soft),
        pixel_confidence=float(args.pixel_confidence),
    )

    output_path = Path(args.output)
    np.save(output_path, canvas.pixels)
    for obj in objects:
        box = obj.bounding_box
        print(f"{obj.class_name} {obj.confidence:.3f} [{box.left}, {box.top}, {box.right}, {box.bottom}]")
    print(f"Wrote {canvas.pixel_format.value} canvas {width}x{height} to {output_path}")


if __name__ == "__main__":
    main()
