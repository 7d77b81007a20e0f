"""
Command line entry point: ``python -m opencv_ffi.build``.
"""

import argparse
import logging
import sys
from pathlib import Path

from ..errors import BuildError
from ..logging_config import setup_logging
from .acquire import acquire
from .bindgen import generate_bindings
from .features import FEATURES_ENV, Features
from .ffibuild import build_extension
from .shims import SHIM_ROOT

logger = logging.getLogger("opencv_ffi.build")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="python -m opencv_ffi.build",
        description="Build the opencv_ffi native extension",
    )
    parser.add_argument(
        "--features",
        default=None,
        help=f"comma separated modules, 'all' and/or 'build-opencv' (default: ${FEATURES_ENV} or dnn,imgcodecs,imgproc)",
    )
    parser.add_argument("--out", type=Path, default=Path("build") / "opencv-ffi", help="build output directory")
    parser.add_argument("--shim-root", type=Path, default=SHIM_ROOT, help="directory holding the shim sources")
    parser.add_argument("--source-dir", type=Path, default=None, help="OpenCV source checkout for build-opencv")
    parser.add_argument("--dest", type=Path, default=None, help="where to install the compiled module")
    parser.add_argument("--bindings-only", action="store_true", help="only generate opencv_sys.h")
    parser.add_argument("--log-file", default=None, help="also write the build log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    try:
        features = Features.resolve(args.features)
        logger.info("Features: %s", features)
        out_dir = args.out.resolve()

        if args.bindings_only:
            bindings, _ = generate_bindings(out_dir, features.modules(), args.shim_root)
            print(bindings)
            return 0

        native = acquire(features, out_dir, source_dir=args.source_dir)
        built = build_extension(
            features, native, out_dir, shim_root=args.shim_root, dest=args.dest, verbose=args.verbose
        )
    except BuildError as e:
        logger.error("%s", e)
        return 1
    print(built)
    return 0


if __name__ == "__main__":
    sys.exit(main())
