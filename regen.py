import logging
import os
import sys
import warnings
from argparse import ArgumentParser
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

import tensorflow as tf

from fractalgen import BatchError, ParameterRanges, SamplerConfig, run_batch
from fractalgen.config import ACCEPTANCE_BAND, DEFAULT_LEDGER_PATH, DEFAULT_OUTPUT_DIR, UploadConfig
from fractalgen.padding import human_readable_size
from fractalgen.upload import UploadError, upload

logger = logging.getLogger("regen")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    if not verbose:
        tf.get_logger().setLevel("ERROR")
        for handler in tf.get_logger().handlers:
            handler.setLevel("ERROR")


def build_parser():
    parser = ArgumentParser(prog="regen", description="Generate and upload fractal images")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging, including TensorFlow diagnostics.')

    commands = parser.add_subparsers(dest='command', required=True)

    generate_cmd = commands.add_parser('generate', help='generate N Mandelbrot images')
    generate_cmd.add_argument('-c', '--count', type=int, required=True,
                              help='number of images to generate', metavar='COUNT')
    generate_cmd.add_argument('-p', '--preview', action='store_true',
                              help='open each accepted image in the system viewer')
    generate_cmd.add_argument('--seed', type=int, default=None,
                              help='seed for the per-image random streams', metavar='SEED')
    generate_cmd.add_argument('--band', type=float, nargs=2, default=list(ACCEPTANCE_BAND),
                              metavar=('LO', 'HI'), help='inclusive fractal ratio acceptance band')
    generate_cmd.add_argument('--max-attempts', type=int, default=None, dest='max_attempts',
                              help='give up on an image after this many attempts (default: never)')
    generate_cmd.add_argument('--output-dir', type=str, default=str(DEFAULT_OUTPUT_DIR), dest='output_dir',
                              help='directory in which images are written')

    upload_cmd = commands.add_parser('upload', help='upload generated images to DigitalOcean Spaces')
    upload_cmd.add_argument('--bucket', type=str, default=UploadConfig.bucket)
    upload_cmd.add_argument('--region', type=str, default=UploadConfig.region)
    upload_cmd.add_argument('--prefix', type=str, default=UploadConfig.prefix)
    upload_cmd.add_argument('--source-dir', type=str, default=str(DEFAULT_OUTPUT_DIR), dest='source_dir')
    upload_cmd.add_argument('--ledger', type=str, default=str(DEFAULT_LEDGER_PATH),
                            help='CSV manifest of uploaded files')

    return parser


def cmd_generate(opt, parser: ArgumentParser) -> int:
    if opt.count < 0:
        parser.error("--count must not be negative.")
    try:
        config = SamplerConfig(
            ranges=ParameterRanges(),
            acceptance_band=tuple(opt.band),
            max_attempts=opt.max_attempts,
            output_dir=Path(opt.output_dir).expanduser(),
        )
    except ValueError as exc:
        parser.error(str(exc))

    logger.info("Generating %d Mandelbrot images...", opt.count)
    try:
        outcomes = run_batch(opt.count, config, seed=opt.seed, preview=opt.preview)
    except BatchError as exc:
        logger.error("%s", exc)
        for index, error in sorted(exc.failures.items()):
            logger.error("  image %d: %s", index, error)
        return 1

    for outcome in outcomes:
        logger.info(
            "%s: %s, fractal ratio %.4f after %d attempts",
            outcome.artifact.path,
            human_readable_size(outcome.artifact.size),
            outcome.acceptance.fractal_ratio,
            outcome.acceptance.attempts,
        )
    return 0


def cmd_upload(opt) -> int:
    config = UploadConfig(
        bucket=opt.bucket,
        region=opt.region,
        prefix=opt.prefix,
        source_dir=Path(opt.source_dir).expanduser(),
        ledger_path=Path(opt.ledger).expanduser(),
    )
    logger.info("Starting upload process...")
    try:
        added = upload(config)
    except UploadError as exc:
        logger.error("Folder upload failed: %s", exc)
        return 1
    logger.info("Upload process finished, %d new ledger rows.", len(added))
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    opt = parser.parse_args(argv)
    configure_logging(bool(opt.verbose))
    logger.debug("TensorFlow version: %s", tf.__version__)

    if opt.command == 'generate':
        return cmd_generate(opt, parser)
    return cmd_upload(opt)


if __name__ == '__main__':
    sys.exit(main())
