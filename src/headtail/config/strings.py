import uuid

RESULT_FILE_SUFFIX = ".json"


def result_file_name(mergeable_type: str) -> str:
    return "{}_{}{}".format(mergeable_type, uuid.uuid4().hex, RESULT_FILE_SUFFIX)


def result_file_glob(mergeable_type: str) -> str:
    return "{}_*{}".format(mergeable_type, RESULT_FILE_SUFFIX)
