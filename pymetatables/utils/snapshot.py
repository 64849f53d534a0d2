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
from typing import Callable, Iterable, Iterator, List, Optional, Set

from pymetatables.exceptions import ValidationError
from pymetatables.table.snapshots import Snapshot

SnapshotLookup = Callable[[int], Optional[Snapshot]]


def ancestors_of(snapshot_id: Optional[int], lookup_fn: SnapshotLookup) -> Iterable[Snapshot]:
    """Walk the parent chain, starting with the snapshot itself.

    The walk stops at the first parent that cannot be looked up, expired snapshots end the chain.

    Raises:
        ValidationError: When a snapshot is reached twice.
    """

    def _snapshot_iterator(snapshot: Snapshot) -> Iterator[Snapshot]:
        visited: Set[int] = set()
        next_snapshot: Optional[Snapshot] = snapshot

        while next_snapshot is not None:
            if next_snapshot.snapshot_id in visited:
                raise ValidationError(f"Cycle in the parents of snapshot {snapshot.snapshot_id} at {next_snapshot.snapshot_id}")
            visited.add(next_snapshot.snapshot_id)
            yield next_snapshot

            parent_id = next_snapshot.parent_snapshot_id
            if parent_id is None:
                break

            next_snapshot = lookup_fn(parent_id)

    if snapshot_id is None:
        return iter([])

    snapshot: Optional[Snapshot] = lookup_fn(snapshot_id)
    if snapshot is not None:
        return _snapshot_iterator(snapshot)
    else:
        return iter([])


def ancestor_ids(snapshot_id: Optional[int], lookup_fn: SnapshotLookup) -> List[int]:
    return [snapshot.snapshot_id for snapshot in ancestors_of(snapshot_id, lookup_fn)]
