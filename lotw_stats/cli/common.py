import logging
from argparse import ArgumentParser, Namespace
from pathlib import Path

from lotw_stats.constants import CONFIG_FILE_NAME, DATA_PATH_ENV


def add_common_args(parser: ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        help="Verbose mode",
        action="store_true",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help=(
            f"JSON config file, default: {CONFIG_FILE_NAME} in the current directory "
            "or one of its two parents"
        ),
    )
    parser.add_argument(
        "-d",
        "--data-dir",
        type=Path,
        help=f"Directory holding the ADIF log and snapshot, overrides ${DATA_PATH_ENV}",
    )


def setup_logging(args: Namespace) -> None:
    logging.basicConfig(
        level=logging.DEBUG if args.v else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.v:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
