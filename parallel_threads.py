# -*- coding: utf-8 -*-
"""
Parallel stacks: group threads that share an identical call stack.

- A thread is a ThreadInfo: demangled frames, the raw frames, identity,
  the in-flight exception (if any) and the lock count.
- Two threads are grouped iff their exceptions are equal and their
  frame signatures are equal position by position.
- Groups are ordered by member count (desc); ties keep first-seen order.
"""
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from frame_demangler import StackFrame, demangle
from thread_registry import EmptyThreadRegistry, ThreadNameResolver

INVALID_LOCK_COUNT = 0xFFFFFFFF
MAX_HEADER_IDS = 10


@dataclass(frozen=True)
class ThreadId:
    name: Optional[str]
    managed_id: int
    os_id: int


@dataclass(frozen=True)
class ExceptionObject:
    type_name: str
    message: Optional[str] = None


class LockCount:
    """Number of locks held by a thread.

    Not every runtime reports lock counts; 0xFFFFFFFF marks that case as
    invalid and reading `count` then raises.
    """
    __slots__ = ("_count",)

    def __init__(self, raw: int = INVALID_LOCK_COUNT):
        if raw < 0 or raw > INVALID_LOCK_COUNT:
            raise ValueError(f"lock count out of range: {raw}")
        self._count = -1 if raw == INVALID_LOCK_COUNT else raw

    @property
    def is_valid(self) -> bool:
        return self._count != -1

    @property
    def is_empty(self) -> bool:
        return not self.is_valid or self._count == 0

    @property
    def count(self) -> int:
        if not self.is_valid:
            raise ValueError("lock count is not supported by the target runtime")
        return self._count

    def __eq__(self, other):
        if not isinstance(other, LockCount):
            return NotImplemented
        return self._count == other._count

    def __hash__(self):
        return hash(self._count)

    def __repr__(self):
        return f"LockCount({self})"

    def __str__(self):
        return str(self._count) if self.is_valid else "Invalid"


@dataclass(frozen=True)
class ThreadInfo:
    stack_frames: Tuple[StackFrame, ...]
    raw_stack_frames: Tuple[str, ...]
    thread_id: ThreadId
    exception: Optional[ExceptionObject] = None
    lock_count: LockCount = field(default_factory=LockCount)

    @property
    def signatures(self) -> Tuple[str, ...]:
        return tuple(sf.signature for sf in self.stack_frames)


def same_stack(a: ThreadInfo, b: ThreadInfo) -> bool:
    """Equal exceptions and equal frame signatures, in order."""
    if a is b:
        return True
    if a.exception != b.exception:
        return False
    return a.signatures == b.signatures


def stack_hash(info: ThreadInfo) -> int:
    """Combining hash over the frame signatures only (the exception is not part of it)."""
    h = 0
    for sf in info.stack_frames:
        h = hash((h, sf.signature))
    return h


class GroupKind(Enum):
    SINGLE = "single"
    GROUPED = "grouped"


@dataclass(frozen=True)
class ParallelThreadGroup:
    """One item of the parallel stacks view: a lone thread or a group of identical ones."""
    kind: GroupKind
    threads: Tuple[ThreadInfo, ...]

    @staticmethod
    def create(threads: Sequence[ThreadInfo]) -> "ParallelThreadGroup":
        if not threads:
            raise ValueError("a thread group needs at least one thread")
        kind = GroupKind.SINGLE if len(threads) == 1 else GroupKind.GROUPED
        return ParallelThreadGroup(kind, tuple(threads))

    @property
    def thread_info(self) -> ThreadInfo:
        return self.threads[0]

    @property
    def thread_count(self) -> int:
        return len(self.threads)

    @property
    def header(self) -> str:
        if self.kind is GroupKind.GROUPED:
            ids = ", ".join(str(t.thread_id.managed_id) for t in self.threads[:MAX_HEADER_IDS])
            more = "..." if len(self.threads) > MAX_HEADER_IDS else ""
            return f"{len(self.threads)} Threads. (Ids: {ids}{more})"
        tid = self.thread_info.thread_id
        name = f" ({tid.name})" if tid.name else ""
        return f"Thread #{tid.managed_id} (OsId: #{tid.os_id}){name}"

    @property
    def body(self) -> str:
        return "\n".join(str(sf) for sf in self.thread_info.stack_frames)

    def __str__(self):
        return f"{self.header}\n{self.body}"


def group_threads(threads: Iterable[ThreadInfo]) -> List[ParallelThreadGroup]:
    """Group threads with identical stacks (and equal exceptions).

    Threads without demangled frames are dropped. Buckets are keyed by
    stack_hash and then split by same_stack, so threads with equal frames
    but different exceptions end up in different groups.
    """
    buckets: Dict[int, List[List[ThreadInfo]]] = {}
    # every group in first-seen order, whatever bucket it lives in
    all_lists: List[List[ThreadInfo]] = []
    for info in threads:
        if not info.stack_frames:
            continue
        lists = buckets.setdefault(stack_hash(info), [])
        for members in lists:
            if same_stack(members[0], info):
                members.append(info)
                break
        else:
            members = [info]
            lists.append(members)
            all_lists.append(members)

    all_lists.sort(key=lambda members: -len(members))
    return [ParallelThreadGroup.create(members) for members in all_lists]


@dataclass(frozen=True)
class ParallelThreads:
    groups: Tuple[ParallelThreadGroup, ...]

    @property
    def thread_count(self) -> int:
        return sum(g.thread_count for g in self.groups)

    @property
    def unique_stacks(self) -> int:
        return len(self.groups)


# ------------------ Snapshot records -> ThreadInfo ------------------

def _frame_entry(entry) -> Tuple[str, Optional[str]]:
    """A frame is either a raw signature string or {'raw': ..., 'signature': ...}."""
    if isinstance(entry, str):
        return entry, entry
    raw = entry.get("raw")
    signature = entry.get("signature")
    if raw is None:
        raw = signature if signature is not None else ""
    return raw, signature


def _exception_from(record: dict) -> Optional[ExceptionObject]:
    exc = record.get("exception")
    if not exc:
        return None
    return ExceptionObject(exc.get("type") or "UnknownExceptionType", exc.get("message"))


def build_thread_info(record: dict, registry: Optional[ThreadNameResolver] = None,
                      debug: bool = False) -> ThreadInfo:
    """Demangle one thread record of a snapshot document."""
    if registry is None:
        registry = EmptyThreadRegistry()
    raw_frames: List[str] = []
    frames: List[StackFrame] = []
    for entry in record.get("frames", ()):
        raw, signature = _frame_entry(entry)
        raw_frames.append(raw)
        if signature is None:
            if debug:
                print(f"[debug] frame without a method: {raw}", file=sys.stderr)
            continue
        frames.append(demangle(signature, debug=debug))

    managed_id = int(record["managed_id"])
    thread_id = ThreadId(registry.get_thread_name(managed_id), managed_id, int(record.get("os_id", 0)))
    return ThreadInfo(
        stack_frames=tuple(frames),
        raw_stack_frames=tuple(raw_frames),
        thread_id=thread_id,
        exception=_exception_from(record),
        lock_count=LockCount(int(record.get("lock_count", INVALID_LOCK_COUNT))),
    )


def create_parallel_threads(records: Iterable[dict], registry: Optional[ThreadNameResolver] = None,
                            jobs: int = 1, debug: bool = False) -> ParallelThreads:
    """Demangle live thread records (optionally on a worker pool) and group them."""
    live = []
    for record in records:
        if not record.get("alive", True):
            if debug:
                print(f"[debug] skip dead thread: {record.get('managed_id')}", file=sys.stderr)
            continue
        live.append(record)

    if jobs > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            infos = list(pool.map(lambda r: build_thread_info(r, registry, debug), live))
    else:
        infos = [build_thread_info(r, registry, debug) for r in live]

    return ParallelThreads(tuple(group_threads(infos)))
