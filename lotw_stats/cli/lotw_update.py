"""
Update the local copy of your LoTW log and its DXCC statistics.

The first run downloads everything. After that, only QSOs and QSLs which LoTW received
since the last run are fetched and merged into the local log.
"""

import os
import sys
from argparse import ArgumentParser, Namespace

from colorama import Fore, Style
from colorama import init as colorama_init

from lotw_stats.backup import BackupManager
from lotw_stats.cli.common import add_common_args, setup_logging
from lotw_stats.config import Config
from lotw_stats.constants import PASSWORD_ENV, USERNAME_ENV
from lotw_stats.lotw import LotwClient
from lotw_stats.snapshot import Snapshot, SnapshotValidator
from lotw_stats.strategy import UpdateStrategy
from lotw_stats.updater import Updater


def main() -> None:
    args = parse_args()
    setup_logging(args)
    colorama_init()

    try:
        config = Config.load(
            args.config,
            data_dir=args.data_dir,
            update_interval_minutes=args.interval,
            keep_backup=True if args.keep_backup else None,
        )
        client = LotwClient(
            username=args.username or os.environ.get(USERNAME_ENV, ""),
            password=args.password or os.environ.get(PASSWORD_ENV, ""),
            url=config.lotw_url,
            qso_begin_date=config.qso_begin_date,
            timeout=config.query_timeout_s,
            retries=config.retries,
            retry_delay=config.retry_delay_s,
            progress=sys.stderr.isatty(),
        )
        updater = Updater(
            config=config,
            client=client,
            backups=BackupManager(enabled=config.backup, keep=config.keep_backup),
            validator=SnapshotValidator(),
        )

        with client:
            if args.rebuild:
                print_snapshot(updater.rebuild())
                return

            result = updater.run(force_full=args.full)

        if result.strategy == UpdateStrategy.SKIP:
            print(f"{Fore.YELLOW}Skipped: {result.reason}{Style.RESET_ALL}")
        if result.snapshot is not None:
            print_snapshot(result.snapshot)
    except Exception as e:
        if not args.v:
            print(f"{Fore.RED}{e}{Style.RESET_ALL}", file=sys.stderr)
            sys.exit(1)
        else:
            raise


def parse_args() -> Namespace:
    parser = ArgumentParser(description=__doc__)
    add_common_args(parser)

    parser.add_argument(
        "-u", "--username", help=f"LoTW username, default: ${USERNAME_ENV}"
    )
    parser.add_argument(
        "-p", "--password", help=f"LoTW password, default: ${PASSWORD_ENV}"
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Download the whole log instead of only what changed",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Only regenerate the statistics from the local log, don't contact LoTW",
    )
    parser.add_argument(
        "--interval",
        type=float,
        metavar="MINUTES",
        help="Skip the update if the last one was less than this many minutes ago",
    )
    parser.add_argument(
        "--keep-backup",
        action="store_true",
        help="Keep the backup of the ADIF log after a successful update",
    )
    return parser.parse_args()


def print_snapshot(snapshot: Snapshot) -> None:
    print(f"{Style.BRIGHT}QSOs:{Style.RESET_ALL}            {snapshot.total_qso}")
    print(f"{Style.BRIGHT}QSLs:{Style.RESET_ALL}            {snapshot.total_qsl}")
    print(
        f"{Style.BRIGHT}DXCC confirmed:{Style.RESET_ALL}  "
        f"{Fore.GREEN}{snapshot.dxcc_confirmed}{Style.RESET_ALL}"
        f" / {len(snapshot.dxcc_stats)} worked"
    )

    if snapshot.incremental_stats:
        new = snapshot.incremental_stats
        print(
            f"New since last update: {new['newQSOs']} QSOs, {new['newQSLs']} QSLs, "
            f"{new['newDXCCs']} DXCCs"
        )

    if snapshot.last_qso_rx:
        print(f"Last QSO received by LoTW: {snapshot.last_qso_rx}")
    if snapshot.last_qsl:
        print(f"Last QSL received by LoTW: {snapshot.last_qsl}")


if __name__ == "__main__":
    main()
