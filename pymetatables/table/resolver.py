# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
"""Resolve the snapshot and the schema a read should use.

The schema that is returned is the one that was current when the snapshot was committed. Field
ids are never reused, so a column added later is not part of it, and a column that was dropped
later still is, with its original type.
"""

from __future__ import annotations

import logging
from typing import Optional

from pymetatables.exceptions import NoSuchSnapshotError
from pymetatables.schema import Schema
from pymetatables.table.metadata import TableMetadata
from pymetatables.table.snapshots import Snapshot
from pymetatables.utils.snapshot import ancestors_of

logger = logging.getLogger(__name__)


def _check_selector(snapshot_id: Optional[int], as_of_timestamp: Optional[int]) -> None:
    if snapshot_id is not None and as_of_timestamp is not None:
        raise ValueError("Cannot use both snapshot_id and as_of_timestamp to select a snapshot")


def snapshot_as_of_timestamp(metadata: TableMetadata, timestamp_ms: int) -> Snapshot:
    """Find the latest snapshot on the current ancestry that was committed at or before the timestamp.

    Raises:
        NoSuchSnapshotError: When the table has no current snapshot, or the timestamp is before its history.
    """
    if metadata.current_snapshot_id is None:
        raise NoSuchSnapshotError("Cannot travel in time, the table has no current snapshot")

    for snapshot in ancestors_of(metadata.current_snapshot_id, metadata.snapshot_by_id):
        if snapshot.timestamp_ms <= timestamp_ms:
            return snapshot

    raise NoSuchSnapshotError(f"Cannot find a snapshot older than {timestamp_ms}")


def resolve_snapshot(
    metadata: TableMetadata, snapshot_id: Optional[int] = None, as_of_timestamp: Optional[int] = None
) -> Snapshot:
    """Return the snapshot selected by id or by timestamp, the current snapshot when neither is given.

    Raises:
        ValueError: When both selectors are given.
        NoSuchSnapshotError: When the selection does not resolve to a snapshot.
    """
    _check_selector(snapshot_id, as_of_timestamp)

    if snapshot_id is not None:
        if snapshot := metadata.snapshot_by_id(snapshot_id):
            return snapshot
        raise NoSuchSnapshotError(f"Cannot find snapshot with ID {snapshot_id}")

    if as_of_timestamp is not None:
        return snapshot_as_of_timestamp(metadata, as_of_timestamp)

    if snapshot := metadata.current_snapshot():
        return snapshot
    raise NoSuchSnapshotError("Cannot get a snapshot as the table does not have any.")


def resolve_schema(
    metadata: TableMetadata, snapshot_id: Optional[int] = None, as_of_timestamp: Optional[int] = None
) -> Schema:
    """Return the schema of the table as of a snapshot, or the current schema without a selector."""
    _check_selector(snapshot_id, as_of_timestamp)
    if snapshot_id is None and as_of_timestamp is None:
        return metadata.schema()

    snapshot = resolve_snapshot(metadata, snapshot_id=snapshot_id, as_of_timestamp=as_of_timestamp)
    if snapshot.schema_id is None:
        logger.warning("Snapshot %s does not record a schema id, using the current schema", snapshot.snapshot_id)
        return metadata.schema()

    if schema := metadata.schema_by_id(snapshot.schema_id):
        return schema

    logger.warning(
        "Schema %s of snapshot %s is not part of the table metadata, using the current schema",
        snapshot.schema_id,
        snapshot.snapshot_id,
    )
    return metadata.schema()
