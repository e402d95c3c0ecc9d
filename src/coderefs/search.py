"""Match flag keys line by line and condense the matches into hunks.

Everything here is pure computation over in-memory text. The pipeline at the
bottom fans files out to a thread pool and enforces the global output caps on
the consuming side only, so workers never coordinate with each other.
"""

from __future__ import annotations

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

from coderefs.config import ELLIPSIS, MAX_FILE_COUNT, MAX_HUNK_COUNT, MAX_LINE_CHAR_COUNT, FileResult, Hunk
from coderefs.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from concurrent.futures import Future

    from coderefs.config import SearchTerms, SourceFile

_DONE = object()


def truncate_line(line: str, max_chars: int = MAX_LINE_CHAR_COUNT) -> str:
    """Truncate a line to keep hunks small, e.g. for a minified file.

    The encoded length is only an approximation of the display width. Slicing
    the string by code points never splits a multi-byte character.

    Args:
        line (str): the line to truncate
        max_chars (int): maximum number of characters to keep

    Returns:
        str: the line itself, or its first ``max_chars`` characters followed by an ellipsis
    """
    if len(line.encode("utf-8")) <= max_chars or len(line) <= max_chars:
        return line
    return line[:max_chars] + ELLIPSIS


def match_delimiters(line: str, flag_key: str, delimiters: str) -> bool:
    """Check whether ``flag_key`` appears in ``line`` surrounded by delimiters.

    Any left delimiter may pair with any right delimiter, including itself.

    Args:
        line (str): the line to search
        flag_key (str): the flag key to look for
        delimiters (str): characters accepted on either side of the key

    Returns:
        bool: True if some ``left + flag_key + right`` occurs in the line
    """
    if flag_key not in line:
        return False
    return any(left + flag_key + right in line for left in delimiters for right in delimiters)


def context_window(match_line: int, total_lines: int, context_lines: int) -> tuple[int, int]:
    """Clip the context window around a match to the file bounds.

    Args:
        match_line (int): 0-based index of the matching line
        total_lines (int): number of lines in the file
        context_lines (int): lines to keep on each side; negative disables context

    Returns:
        tuple[int, int]: 0-based ``(start, stop)`` slice bounds; empty when context is disabled
    """
    if context_lines < 0:
        return match_line, match_line
    start = max(0, match_line - context_lines)
    stop = min(total_lines, match_line + context_lines + 1)
    return start, stop


def line_if_match(
    source: SourceFile,
    flag_key: str,
    aliases: Sequence[str],
    match_line: int,
    terms: SearchTerms,
) -> Hunk | None:
    """Build a candidate hunk if the given line references ``flag_key``.

    Args:
        source (SourceFile): the file being searched
        flag_key (str): the flag key to look for
        aliases (Sequence[str]): aliases of the flag key, matched as plain substrings
        match_line (int): 0-based index of the line to test
        terms (SearchTerms): project key, delimiters and context settings

    Returns:
        Hunk | None: the candidate hunk, or None when neither the key nor an alias matches
    """
    line = source.lines[match_line]
    matched_flag = match_delimiters(line, flag_key, terms.delimiters)
    alias_matches = tuple(alias for alias in aliases if alias in line)
    if not matched_flag and not alias_matches:
        return None

    start, stop = context_window(match_line, len(source.lines), terms.context_lines)
    context = [truncate_line(ln, terms.max_line_char_count) for ln in source.lines[start:stop]]
    return Hunk(
        project_key=terms.project_key,
        flag_key=flag_key,
        starting_line=start + 1,
        lines="\n".join(context),
        aliases=alias_matches,
    )


def dedupe(items: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicates while keeping first-seen order."""
    return tuple(dict.fromkeys(items))


def merge_hunks(a: Hunk, b: Hunk, context_lines: int) -> list[Hunk]:
    """Combine two hunks of the same flag key when their lines overlap.

    Returns both hunks unchanged (earliest first) when they are disjoint or
    when context is disabled. When ``b`` is entirely covered by ``a`` only
    ``a`` is kept, with the aliases of both.

    Args:
        a (Hunk): one hunk
        b (Hunk): the other hunk
        context_lines (int): the context setting of the run

    Returns:
        list[Hunk]: one merged hunk, or the two hunks ordered by starting line
    """
    if a.starting_line > b.starting_line:
        a, b = b, a

    overlap = a.overlap(b)
    if context_lines < 0 or overlap < 0:
        return [a, b]

    aliases = dedupe((*a.aliases, *b.aliases))
    b_lines = b.lines.split("\n")
    if overlap >= len(b_lines):
        if aliases == a.aliases:
            return [a]
        return [a.model_copy(update={"aliases": aliases})]

    combined = a.lines.split("\n") + b_lines[overlap:]
    return [
        Hunk(
            project_key=a.project_key,
            flag_key=a.flag_key,
            starting_line=a.starting_line,
            lines="\n".join(combined),
            aliases=aliases,
        ),
    ]


def aggregate_hunks_for_flag(
    source: SourceFile,
    flag_key: str,
    aliases: Sequence[str],
    terms: SearchTerms,
) -> list[Hunk]:
    """Find every reference to ``flag_key`` in a file and merge overlapping ones.

    Lines are visited in order, so a candidate can only ever overlap the last
    accumulated hunk.

    Args:
        source (SourceFile): the file to search
        flag_key (str): the flag key to look for
        aliases (Sequence[str]): aliases of the flag key
        terms (SearchTerms): search settings of the run

    Returns:
        list[Hunk]: non-overlapping hunks sorted by starting line
    """
    hunks: list[Hunk] = []
    for i in range(len(source.lines)):
        match = line_if_match(source, flag_key, aliases, i, terms)
        if match is None:
            continue
        if hunks and hunks[-1].overlap(match) >= 0:
            last = hunks.pop()
            hunks.extend(merge_hunks(last, match, terms.context_lines))
        else:
            hunks.append(match)
    return hunks


def file_to_result(source: SourceFile, terms: SearchTerms) -> FileResult | None:
    """Search one file for every flag key.

    Args:
        source (SourceFile): the file to search
        terms (SearchTerms): search settings of the run

    Returns:
        FileResult | None: the hunks of the file, or None when nothing matched
    """
    hunks: list[Hunk] = []
    for flag_key, aliases in terms.aliases.items():
        hunks.extend(aggregate_hunks_for_flag(source, flag_key, aliases, terms))
    if not hunks:
        return None
    return FileResult(path=source.path, hunks=tuple(hunks))


def _search_and_publish(source: SourceFile, terms: SearchTerms, results: queue.Queue[object]) -> None:
    result = file_to_result(source, terms)
    if result is not None:
        results.put(result)


def process_files(
    files: Iterable[SourceFile],
    results: queue.Queue[object],
    terms: SearchTerms,
    executor: ThreadPoolExecutor,
    stop: threading.Event,
) -> None:
    """Submit one task per file and signal completion on the results queue.

    Every non-empty result is put on ``results`` by the task that produced it.
    Once ``files`` is exhausted and every task has finished, a sentinel is
    put on the queue. Setting ``stop`` ends the submission loop early. An
    error raised while iterating ``files`` or by a task is put on the queue
    for the consumer to re-raise.

    Args:
        files (Iterable[SourceFile]): the files to search, possibly lazy
        results (queue.Queue[object]): where finished results are published
        terms (SearchTerms): search settings shared by every task
        executor (ThreadPoolExecutor): the pool running the tasks
        stop (threading.Event): set by the consumer when it stops draining
    """
    futures: list[Future[None]] = []
    try:
        for source in files:
            if stop.is_set():
                break
            try:
                futures.append(executor.submit(_search_and_publish, source, terms, results))
            except RuntimeError:
                # executor shut down by the consumer
                break
    except Exception as exc:  # noqa: BLE001
        results.put(exc)
    finally:
        wait(futures)
        for future in futures:
            if not future.cancelled() and future.exception() is not None:
                results.put(future.exception())
                break
        results.put(_DONE)


def collect_results(
    results: queue.Queue[object],
    *,
    max_file_count: int = MAX_FILE_COUNT,
    max_hunk_count: int = MAX_HUNK_COUNT,
    deadline: float | None = None,
) -> tuple[list[FileResult], bool]:
    """Drain ``results`` until the producer is done, a cap is hit or the deadline passes.

    No item is accepted once ``deadline`` (a `time.monotonic` value) has
    passed, even when results are already waiting on the queue.

    Args:
        results (queue.Queue[object]): the queue fed by `process_files`
        max_file_count (int): maximum number of files with references
        max_hunk_count (int): maximum number of hunks across all files
        deadline (float | None): monotonic time after which collection stops

    Raises:
        Exception: any error published on the queue by the producer or a task

    Returns:
        tuple[list[FileResult], bool]: the accepted results, and whether every task finished
    """
    accepted: list[FileResult] = []
    total_hunks = 0
    while True:
        remaining = None if deadline is None else deadline - time.monotonic()
        if remaining is not None and remaining <= 0:
            logger.warning("search deadline reached", files=len(accepted))
            return accepted, False
        try:
            item = results.get(timeout=remaining)
        except queue.Empty:
            logger.warning("search deadline reached", files=len(accepted))
            return accepted, False
        if item is _DONE:
            return accepted, True
        if isinstance(item, Exception):
            raise item
        if not isinstance(item, FileResult):
            continue
        accepted.append(item)
        if len(accepted) >= max_file_count:
            logger.warning("reached maximum number of files with references", max_file_count=max_file_count)
            return accepted, False
        total_hunks += len(item.hunks)
        if total_hunks > max_hunk_count:
            logger.warning("reached maximum number of hunks", max_hunk_count=max_hunk_count)
            return accepted, False


def search_for_refs(
    files: Iterable[SourceFile],
    terms: SearchTerms,
    *,
    max_file_count: int = MAX_FILE_COUNT,
    max_hunk_count: int = MAX_HUNK_COUNT,
    max_workers: int | None = None,
    timeout: float | None = None,
) -> list[FileResult]:
    """Search files concurrently and collect a bounded list of results.

    Results are accepted in completion order. Collection stops once
    ``max_file_count`` files with references have been accepted, or once the
    running hunk total exceeds ``max_hunk_count`` (the file crossing the limit
    is kept). Outstanding work is then abandoned and its results discarded.

    Args:
        files (Iterable[SourceFile]): the files to search, possibly lazy
        terms (SearchTerms): flag keys, aliases and search settings
        max_file_count (int): maximum number of files with references
        max_hunk_count (int): maximum number of hunks across all files
        max_workers (int | None): size of the worker pool; None lets the executor decide
        timeout (float | None): deadline in seconds for the whole run; None waits forever

    Returns:
        list[FileResult]: the accepted results, in no particular order
    """
    results: queue.Queue[object] = queue.Queue()
    stop = threading.Event()
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="coderefs")
    producer = threading.Thread(
        target=process_files,
        args=(files, results, terms, executor, stop),
        name="coderefs-producer",
        daemon=True,
    )
    deadline = None if timeout is None else time.monotonic() + timeout
    producer.start()

    finished = False
    try:
        accepted, finished = collect_results(
            results,
            max_file_count=max_file_count,
            max_hunk_count=max_hunk_count,
            deadline=deadline,
        )
    finally:
        stop.set()
        executor.shutdown(wait=finished, cancel_futures=not finished)

    logger.info(
        "search complete",
        files=len(accepted),
        hunks=sum(len(r.hunks) for r in accepted),
        flags=len(terms.flag_keys),
    )
    return accepted
