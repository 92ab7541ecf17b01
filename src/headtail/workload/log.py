import asyncio
import os
import pathlib
import struct
import threading
from abc import abstractmethod
from typing import List, Protocol
from typing_extensions import override


class SharedLog(Protocol):
    """
    The append target exercised by the append loop workload.
    """

    @abstractmethod
    def append(self, record: bytes) -> int:
        """
        Appends `record` and returns its sequence number.
        """
        raise NotImplementedError

    async def append_async(self, record: bytes) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.append, record)


class InMemoryLog(SharedLog):
    """
    Keeps all appended records in memory. Safe to share across threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[bytes] = []

    @override
    def append(self, record: bytes) -> int:
        with self._lock:
            self._records.append(record)
            return len(self._records) - 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def read(self, seqnum: int) -> bytes:
        with self._lock:
            return self._records[seqnum]


class FileLog(SharedLog):
    """
    Appends length-prefixed records to a file. Safe to share across threads
    within one process.
    """

    _LENGTH_PREFIX = struct.Struct("<I")

    def __init__(self, path: str | pathlib.Path) -> None:
        self._path = pathlib.Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._next_seqnum = sum(1 for _ in self._scan())

    @property
    def path(self) -> pathlib.Path:
        return self._path

    @override
    def append(self, record: bytes) -> int:
        with self._lock:
            with open(self._path, "ab") as file:
                file.write(self._LENGTH_PREFIX.pack(len(record)))
                file.write(record)
                file.flush()
                os.fsync(file.fileno())
            seqnum = self._next_seqnum
            self._next_seqnum += 1
            return seqnum

    def read_all(self) -> List[bytes]:
        with self._lock:
            return list(self._scan())

    def _scan(self):
        if not self._path.exists():
            return
        with open(self._path, "rb") as file:
            while True:
                prefix = file.read(self._LENGTH_PREFIX.size)
                if len(prefix) < self._LENGTH_PREFIX.size:
                    break
                (length,) = self._LENGTH_PREFIX.unpack(prefix)
                yield file.read(length)
