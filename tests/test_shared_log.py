import asyncio
import threading

from headtail.workload.log import FileLog, InMemoryLog
from headtail.workload.records import create_record, decode_record, encode_record


def test_in_memory_log():
    log = InMemoryLog()
    assert log.append(b"a") == 0
    assert log.append(b"bc") == 1
    assert len(log) == 2
    assert log.read(1) == b"bc"


def test_in_memory_log_async():
    log = InMemoryLog()

    async def append_all():
        return await asyncio.gather(*[log.append_async(b"x") for _ in range(10)])

    seqnums = asyncio.run(append_all())
    assert sorted(seqnums) == list(range(10))
    assert len(log) == 10


def test_in_memory_log_threads():
    log = InMemoryLog()

    def append_many():
        for _ in range(100):
            log.append(b"r")

    threads = [threading.Thread(target=append_many) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(log) == 400


def test_file_log(tmp_path):
    path = tmp_path / "logs" / "shared.log"
    log = FileLog(path)
    assert log.append(b"hello") == 0
    assert log.append(b"") == 1
    assert log.append(b"world") == 2
    assert log.read_all() == [b"hello", b"", b"world"]

    # Reopening continues the sequence numbers.
    reopened = FileLog(path)
    assert reopened.append(b"again") == 3
    assert reopened.read_all()[-1] == b"again"


def test_records():
    record = create_record(1024, seed=7)
    assert len(record) == 1024
    assert create_record(1024, seed=7) == record
    assert decode_record(encode_record(record)) == record
