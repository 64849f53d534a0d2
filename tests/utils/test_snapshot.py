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
from typing import Dict, Optional

import pytest

from pymetatables.exceptions import ValidationError
from pymetatables.table.snapshots import Snapshot
from pymetatables.utils.snapshot import ancestor_ids, ancestors_of


def _lookup(*snapshots: Snapshot):  # type: ignore
    by_id: Dict[int, Snapshot] = {snapshot.snapshot_id: snapshot for snapshot in snapshots}

    def lookup(snapshot_id: int) -> Optional[Snapshot]:
        return by_id.get(snapshot_id)

    return lookup


def _snapshot(snapshot_id: int, parent_snapshot_id: Optional[int] = None) -> Snapshot:
    return Snapshot(snapshot_id=snapshot_id, parent_snapshot_id=parent_snapshot_id, timestamp_ms=snapshot_id)


def test_ancestors_of() -> None:
    lookup = _lookup(_snapshot(1), _snapshot(2, 1), _snapshot(3, 2), _snapshot(4, 2))
    assert [snapshot.snapshot_id for snapshot in ancestors_of(3, lookup)] == [3, 2, 1]
    assert ancestor_ids(4, lookup) == [4, 2, 1]


def test_ancestors_of_expired_parent() -> None:
    lookup = _lookup(_snapshot(2, 1), _snapshot(3, 2))
    assert ancestor_ids(3, lookup) == [3, 2]


def test_ancestors_of_unknown_or_missing() -> None:
    lookup = _lookup(_snapshot(1))
    assert ancestor_ids(None, lookup) == []
    assert ancestor_ids(42, lookup) == []


def test_ancestors_of_cycle() -> None:
    lookup = _lookup(_snapshot(1, 2), _snapshot(2, 1))
    with pytest.raises(ValidationError, match="Cycle in the parents of snapshot 1 at 1"):
        ancestor_ids(1, lookup)
