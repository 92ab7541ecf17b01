import logging
import pathlib
import sys

from headtail.utils import set_up_logging
from headtail.workload.append_loop import AppendLoopResponse
from headtail.workload.merge import MERGEABLE_TYPES, MergeHandler, MergeRequest
from headtail.workload.report import format_summary

logger = logging.getLogger(__name__)


def register_command(subparsers):
    parser = subparsers.add_parser(
        "merge",
        help="Merge the results of several append loop runs.",
    )
    parser.add_argument(
        "--directory",
        type=str,
        required=True,
        help="The directory holding the result files to merge.",
    )
    parser.add_argument(
        "--mergeable-type",
        type=str,
        choices=list(MERGEABLE_TYPES.keys()),
        default=AppendLoopResponse.MERGEABLE_TYPE,
        help="The type of results to merge.",
    )
    parser.add_argument(
        "--output-directory",
        type=str,
        help="If set, the merged result is written to this directory.",
    )
    parser.add_argument(
        "--csv",
        type=str,
        help="If set, the merged latency histogram is written to this CSV file.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Set to enable debug logging.",
    )
    parser.set_defaults(func=main)


def main(args) -> None:
    set_up_logging(debug_mode=args.debug)

    request = MergeRequest(
        directory=pathlib.Path(args.directory),
        mergeable_type=args.mergeable_type,
        output_directory=(
            pathlib.Path(args.output_directory) if args.output_directory else None
        ),
    )
    try:
        merged = MergeHandler().run(request)
    except (ValueError, FileNotFoundError) as ex:
        logger.error("Failed to merge results: %s", str(ex))
        sys.exit(1)

    print(format_summary(merged))

    if args.csv is not None and merged.latency is not None:
        merged.latency.to_dataframe().to_csv(args.csv, index=False)
        print()
        print("Wrote the latency histogram to {}".format(args.csv))
