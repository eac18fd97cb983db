#!venv/bin/python
import os
import re
import sys

SUBS = [
    ("async def", "def"),
    ("async with", "with"),
    ("await ", ""),
    ("async for", "for"),
    ("__aiter__", "__iter__"),
    ("AsyncIterator", "Iterator"),
    ("AsyncIterable", "Iterable"),
    (r"Awaitable\[Response\]", "Response"),
    (r"Awaitable\[None\]", "None"),
    ("Awaitable, ", ""),
    ("AsyncBaseStorage", "SyncBaseStorage"),
    ("AsyncInMemoryStorage", "SyncInMemoryStorage"),
    ("AsyncSqliteStorage", "SyncSqliteStorage"),
    ("AsyncCacheEngine", "SyncCacheEngine"),
    ("AsyncMessagePort", "MessagePort"),
    ("AsyncCacheTransport", "SyncCacheTransport"),
    ("AsyncCacheClient", "SyncCacheClient"),
    ("AsyncBaseTransport", "BaseTransport"),
    ("AsyncClient", "Client"),
    ("_async_base", "_sync_base"),
    ("_async_sqlite", "_sync_sqlite"),
    ("_async_engine", "_sync_engine"),
    ("_aiter_stream", "_iter_stream"),
    ("make_async_iterator", "make_sync_iterator"),
    ("handle_async_request", "handle_request"),
    ("aiter_raw", "iter_raw"),
    ("aread", "read"),
    ("aclose", "close"),
    ("asynchronous=True", "asynchronous=False"),
    ("import anyio", "import threading"),
    (r"anyio\.Lock", "threading.Lock"),
    ("anysqlite", "sqlite3"),
    ("*@pytest.mark.anyio", ""),
    ("aprint_sqlite_state", "print_sqlite_state"),
]
COMPILED_SUBS = [(re.compile(r"(^|\b)" + regex + r"($|\b|(?<=\W))"), repl) for regex, repl in SUBS]

USED_SUBS = set()

FILES = [
    ("swcache/_async_engine.py", "swcache/_sync_engine.py"),
    ("swcache/_async_httpx.py", "swcache/_sync_httpx.py"),
    ("swcache/_core/_storages/_async_base.py", "swcache/_core/_storages/_sync_base.py"),
    ("swcache/_core/_storages/_async_memory.py", "swcache/_core/_storages/_sync_memory.py"),
    ("swcache/_core/_storages/_async_sqlite.py", "swcache/_core/_storages/_sync_sqlite.py"),
    ("tests/test_async_httpx.py", "tests/test_sync_httpx.py"),
]
DIRS = [
    ("tests/_async", "tests/_sync"),
]


def unasync_line(line):
    for index, (regex, repl) in enumerate(COMPILED_SUBS):
        new_line = regex.sub(repl, line)
        if new_line != line:
            USED_SUBS.add(index)
        line = new_line
    return line


def iter_targets():
    yield from FILES
    for in_dir, out_dir in DIRS:
        for dirpath, _, filenames in os.walk(in_dir):
            rel_dir = os.path.relpath(dirpath, in_dir)
            for filename in sorted(filenames):
                if filename.endswith(".py"):
                    yield (
                        os.path.normpath(os.path.join(in_dir, rel_dir, filename)),
                        os.path.normpath(os.path.join(out_dir, rel_dir, filename)),
                    )


def process(in_path, out_path, check_only):
    with open(in_path) as in_file:
        expected = [unasync_line(line) for line in in_file]

    if not check_only:
        os.makedirs(os.path.dirname(out_path), exist_ok=True)
        with open(out_path, "w", newline="") as out_file:
            out_file.writelines(expected)
        return

    with open(out_path) as out_file:
        actual = out_file.readlines()
    for lineno, (want, got) in enumerate(zip(expected, actual), start=1):
        if want != got:
            print(f"unasync mismatch in {out_path!r} at line {lineno}")
            print(f"Expected sync code: {want!r}")
            print(f"Actual sync code:   {got!r}")
            sys.exit(1)
    if len(expected) != len(actual):
        print(f"unasync mismatch in {out_path!r}: {len(expected)} lines expected, {len(actual)} found")
        sys.exit(1)


def main():
    check_only = "--check" in sys.argv
    for in_path, out_path in iter_targets():
        print(in_path, "->", out_path)
        process(in_path, out_path, check_only)

    unused_subs = [SUBS[i] for i in range(len(SUBS)) if i not in USED_SUBS]
    if unused_subs:
        print("These SUBS were not used:")
        for sub in unused_subs:
            print(f"  {sub!r}")
        sys.exit(1)


if __name__ == "__main__":
    main()
