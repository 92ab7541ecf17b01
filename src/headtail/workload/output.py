import json
import logging
import pathlib
from typing import Any, Dict, List

from headtail.config.strings import result_file_glob, result_file_name

logger = logging.getLogger(__name__)


def create_output_directory(path: str | pathlib.Path) -> pathlib.Path:
    out_dir = pathlib.Path(path)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def write_result(
    directory: str | pathlib.Path, mergeable_type: str, result: Dict[str, Any]
) -> pathlib.Path:
    out_dir = create_output_directory(directory)
    out_file = out_dir / result_file_name(mergeable_type)
    with open(out_file, "w", encoding="UTF-8") as file:
        json.dump(result, file, indent=2)
    logger.info("Wrote %s result to %s", mergeable_type, out_file)
    return out_file


def read_results(
    directory: str | pathlib.Path, mergeable_type: str
) -> List[Dict[str, Any]]:
    out_dir = pathlib.Path(directory)
    if not out_dir.is_dir():
        raise FileNotFoundError("Result directory {} does not exist.".format(out_dir))

    results = []
    for result_file in sorted(out_dir.glob(result_file_glob(mergeable_type))):
        with open(result_file, "r", encoding="UTF-8") as file:
            results.append(json.load(file))
    logger.debug(
        "Read %d %s result(s) from %s", len(results), mergeable_type, out_dir
    )
    return results
