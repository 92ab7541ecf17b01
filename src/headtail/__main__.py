import argparse
import sys

import headtail
import headtail.exec.merge
import headtail.exec.run


def main():
    parser = argparse.ArgumentParser(
        description="headtail: Append latency benchmarks with bounded-memory head and tail tracking.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="Print headtail's version and exit.",
    )
    subparsers = parser.add_subparsers(title="Commands")
    headtail.exec.run.register_command(subparsers)
    headtail.exec.merge.register_command(subparsers)
    args = parser.parse_args()

    if args.version:
        print("headtail", headtail.__version__)
        return

    if "func" not in args:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
