from __future__ import annotations

from typing import Optional, overload

import msgpack
from typing_extensions import cast

from swcache._core.models import Snapshot
from swcache._exceptions import StorageFailure


def pack(value: Snapshot, /) -> bytes:
    return cast(
        bytes,
        msgpack.packb(
            {
                "status_code": value.status_code,
                "headers": [list(pair) for pair in value.headers],
                "body": value.body,
                "created_at": value.created_at,
            }
        ),
    )


@overload
def unpack(value: bytes, /) -> Snapshot: ...


@overload
def unpack(value: Optional[bytes], /) -> Optional[Snapshot]: ...


def unpack(value: Optional[bytes], /) -> Optional[Snapshot]:
    if value is None:
        return None
    try:
        data = msgpack.unpackb(value)
        return Snapshot(
            status_code=data["status_code"],
            headers=tuple((key, val) for key, val in data["headers"]),
            body=data["body"],
            created_at=data["created_at"],
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise StorageFailure("Stored snapshot is corrupted") from exc
