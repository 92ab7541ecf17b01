import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Type

from headtail.workload.append_loop import AppendLoopResponse
from headtail.workload.output import read_results, write_result

logger = logging.getLogger(__name__)


MERGEABLE_TYPES: Dict[str, Type[AppendLoopResponse]] = {
    AppendLoopResponse.MERGEABLE_TYPE: AppendLoopResponse,
}


@dataclass
class MergeRequest:
    directory: pathlib.Path
    mergeable_type: str
    # If set, the merged result is also written to this directory.
    output_directory: pathlib.Path | None = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MergeRequest":
        if not isinstance(raw, dict):
            raise TypeError("A merge request must be a JSON object.")
        # Both CamelCase and snake case keys are accepted.
        directory = raw.get("Directory", raw.get("directory"))
        mergeable_type = raw.get(
            "MergableType",
            raw.get("mergeable_type", AppendLoopResponse.MERGEABLE_TYPE),
        )
        output_directory = raw.get("OutputDirectory", raw.get("output_directory"))
        if directory is None:
            raise KeyError("A merge request must specify a directory.")
        return cls(
            directory=pathlib.Path(directory),
            mergeable_type=str(mergeable_type),
            output_directory=(
                pathlib.Path(output_directory) if output_directory else None
            ),
        )


class MergeHandler:
    """
    Combines the result files written by several handler runs (e.g., several
    concurrently running append loops) into one result.
    """

    def call(self, payload: bytes) -> bytes:
        try:
            raw = json.loads(payload)
            request = MergeRequest.from_dict(raw)
            merged = self.run(request).to_dict()
        except (ValueError, KeyError, TypeError, FileNotFoundError) as ex:
            logger.error("Failed to merge results: %s", str(ex))
            merged = {"success": False, "message": "Merge failed: {}".format(ex)}
        return json.dumps(merged).encode("UTF-8")

    def run(self, request: MergeRequest) -> AppendLoopResponse:
        if request.mergeable_type not in MERGEABLE_TYPES:
            raise ValueError(
                "Unsupported mergeable type '{}'".format(request.mergeable_type)
            )
        result_type = MERGEABLE_TYPES[request.mergeable_type]

        raw_results = read_results(request.directory, request.mergeable_type)
        if len(raw_results) == 0:
            raise ValueError(
                "No {} results found in {}.".format(
                    request.mergeable_type, request.directory
                )
            )
        results: List[AppendLoopResponse] = [
            result_type.from_dict(raw) for raw in raw_results
        ]
        merged = result_type.merge(results)
        logger.info(
            "Merged %d %s result(s) from %s",
            len(results),
            request.mergeable_type,
            request.directory,
        )

        if request.output_directory is not None:
            write_result(
                request.output_directory, request.mergeable_type, merged.to_dict()
            )
        return merged
