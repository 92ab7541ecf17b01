import logging
import sys
import threading
from typing import List, Optional

from headtail.config.file import ConfigFile
from headtail.utils import set_up_logging
from headtail.workload.append_loop import (
    AppendLoopHandler,
    AppendLoopRequest,
    AppendLoopResponse,
)
from headtail.workload.output import create_output_directory
from headtail.workload.report import format_summary

logger = logging.getLogger(__name__)


def register_command(subparsers):
    parser = subparsers.add_parser(
        "run",
        help="Run the append loop workload and record append latencies.",
    )
    parser.add_argument(
        "--config-file",
        type=str,
        required=True,
        help="Path to the workload configuration file.",
    )
    parser.add_argument(
        "--async",
        dest="is_async",
        action="store_true",
        help="Keep several appends in flight at once.",
    )
    parser.add_argument(
        "--functions",
        type=int,
        default=1,
        help="The number of append loops to run concurrently.",
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Loop duration in seconds (overrides the configured value).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Set to enable debug logging.",
    )
    parser.set_defaults(func=main)


def main(args) -> None:
    config = ConfigFile.load(args.config_file)
    set_up_logging(filename=config.log_file, debug_mode=args.debug, also_console=True)

    defaults = config.append_loop_defaults()
    if args.duration is not None:
        defaults["loop_duration"] = args.duration

    try:
        request = AppendLoopRequest.from_dict({}, defaults)
    except (ValueError, KeyError) as ex:
        logger.error("Invalid append loop configuration: %s", str(ex))
        sys.exit(1)

    if args.functions < 1:
        logger.error("--functions must be at least 1.")
        sys.exit(1)

    out_dir = create_output_directory(config.output_directory)
    log = config.create_shared_log()
    responses = run_concurrently(
        [
            AppendLoopHandler(log, args.is_async, output_directory=out_dir)
            for _ in range(args.functions)
        ],
        request,
    )

    failed = [r for r in responses if r is None or not r.success]
    if len(failed) > 0:
        logger.error("%d of %d append loop(s) failed.", len(failed), len(responses))
        sys.exit(1)

    merged = AppendLoopResponse.merge(r for r in responses if r is not None)
    print(format_summary(merged))
    print()
    print("Results written to {}".format(out_dir))


def run_concurrently(
    handlers: List[AppendLoopHandler], request: AppendLoopRequest
) -> List[Optional[AppendLoopResponse]]:
    """
    Runs each handler on its own thread. Failed runs are reported as `None`.
    """
    responses: List[Optional[AppendLoopResponse]] = [None] * len(handlers)

    def _run(idx: int) -> None:
        try:
            responses[idx] = handlers[idx].run(request)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("[F %d] Append loop raised an unexpected error.", idx)

    threads = [
        threading.Thread(target=_run, args=(idx,), name="append-loop-{}".format(idx))
        for idx in range(len(handlers))
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return responses
