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
# pylint:disable=protected-access
import json
from typing import Any, Dict

import pytest

from pymetatables.exceptions import ValidationError
from pymetatables.partitioning import PartitionField, PartitionSpec
from pymetatables.schema import Schema
from pymetatables.table.metadata import TableMetadata, TableMetadataUtil, new_table_metadata
from pymetatables.table.snapshots import Snapshot, SnapshotLogEntry
from pymetatables.transforms import TruncateTransform
from pymetatables.types import LongType, NestedField, StringType

FIRST_SNAPSHOT_ID = 1001
SECOND_SNAPSHOT_ID = 1002
THIRD_SNAPSHOT_ID = 1003
FIRST_COMMIT_MS = 1_700_000_000_000


def _metadata_dict(**overrides: Any) -> Dict[str, Any]:
    return {
        "format-version": 2,
        "table-uuid": "9c12d441-03fe-4693-9a96-a0705ddf69c1",
        "location": "s3://bucket/test/location",
        "last-sequence-number": 0,
        "last-updated-ms": FIRST_COMMIT_MS,
        "last-column-id": 2,
        "current-schema-id": 0,
        "schemas": [
            {
                "type": "struct",
                "schema-id": 0,
                "fields": [
                    {"id": 1, "name": "id", "required": True, "type": "long"},
                    {"id": 2, "name": "data", "required": False, "type": "string"},
                ],
            }
        ],
        "default-spec-id": 0,
        "partition-specs": [{"spec-id": 0, "fields": [{"source-id": 1, "field-id": 1000, "transform": "identity", "name": "id"}]}],
        "last-partition-id": 1000,
        "properties": {},
        **overrides,
    }


def test_parse_obj() -> None:
    metadata = TableMetadataUtil.parse_obj(_metadata_dict())
    assert metadata.location == "s3://bucket/test/location"
    assert metadata.schema().find_field("data").field_type == StringType()
    assert metadata.spec().fields[0].name == "id"
    assert metadata.current_snapshot() is None


def test_parse_obj_current_snapshot_minus_one() -> None:
    assert TableMetadataUtil.parse_obj(_metadata_dict(**{"current-snapshot-id": -1})).current_snapshot_id is None


def test_parse_obj_missing_format_version() -> None:
    data = _metadata_dict()
    del data["format-version"]
    with pytest.raises(ValidationError, match="Missing format-version in TableMetadata"):
        TableMetadataUtil.parse_obj(data)


def test_parse_obj_unknown_format_version() -> None:
    with pytest.raises(ValidationError, match="Unknown format version: 3"):
        TableMetadataUtil.parse_obj(_metadata_dict(**{"format-version": 3}))


def test_properties_are_strings() -> None:
    metadata = TableMetadataUtil.parse_obj(_metadata_dict(properties={"read.metadata.scan.max-workers": 4}))
    assert metadata.properties == {"read.metadata.scan.max-workers": "4"}


def test_unknown_current_schema() -> None:
    with pytest.raises(ValidationError, match="current-schema-id 5 can't be found in the schemas"):
        TableMetadataUtil.parse_obj(_metadata_dict(**{"current-schema-id": 5}))


def test_unknown_default_spec() -> None:
    with pytest.raises(ValidationError, match="default-spec-id 3 can't be found"):
        TableMetadataUtil.parse_obj(_metadata_dict(**{"default-spec-id": 3}))


def test_unknown_current_snapshot() -> None:
    with pytest.raises(ValidationError, match="current-snapshot-id 42 can't be found in the snapshots"):
        TableMetadataUtil.parse_obj(_metadata_dict(**{"current-snapshot-id": 42}))


def test_parent_cycle() -> None:
    snapshots = [
        {"snapshot-id": 1, "parent-snapshot-id": 2, "timestamp-ms": FIRST_COMMIT_MS},
        {"snapshot-id": 2, "parent-snapshot-id": 1, "timestamp-ms": FIRST_COMMIT_MS + 1},
    ]
    with pytest.raises(ValidationError, match="Cycle in the parents of snapshot"):
        TableMetadataUtil.parse_obj(_metadata_dict(snapshots=snapshots))


def test_snapshot_log_starts_with_expired_snapshots(table_metadata: TableMetadata) -> None:
    log = [SnapshotLogEntry(snapshot_id=1, timestamp_ms=FIRST_COMMIT_MS - 10)] + table_metadata.snapshot_log
    assert table_metadata._update(snapshot_log=log).snapshot_log[0].snapshot_id == 1


def test_snapshot_log_unknown_after_known(table_metadata: TableMetadata) -> None:
    log = table_metadata.snapshot_log + [SnapshotLogEntry(snapshot_id=1, timestamp_ms=FIRST_COMMIT_MS * 2)]
    with pytest.raises(ValidationError, match="snapshot-log references unknown snapshot 1 after known snapshots"):
        table_metadata._update(snapshot_log=log)


def test_snapshot_log_out_of_order(table_metadata: TableMetadata) -> None:
    late = table_metadata.snapshot_log[-1].timestamp_ms
    with pytest.raises(ValidationError, match="snapshot-log is not ordered by time"):
        table_metadata.set_current_snapshot(FIRST_SNAPSHOT_ID, late - 60_001)


def test_snapshot_log_tolerates_clock_skew(table_metadata: TableMetadata) -> None:
    late = table_metadata.snapshot_log[-1].timestamp_ms
    metadata = table_metadata.set_current_snapshot(FIRST_SNAPSHOT_ID, late - 60_000)
    assert metadata.current_snapshot_id == FIRST_SNAPSHOT_ID
    assert len(metadata.snapshot_log) == 4


def test_add_snapshot(table_metadata: TableMetadata) -> None:
    assert table_metadata.current_snapshot_id == THIRD_SNAPSHOT_ID
    assert table_metadata.last_sequence_number == 3
    assert [entry.snapshot_id for entry in table_metadata.snapshot_log] == [
        FIRST_SNAPSHOT_ID,
        SECOND_SNAPSHOT_ID,
        THIRD_SNAPSHOT_ID,
    ]


def test_add_snapshot_not_current(table_metadata: TableMetadata) -> None:
    snapshot = Snapshot(snapshot_id=2000, parent_snapshot_id=THIRD_SNAPSHOT_ID, sequence_number=4, timestamp_ms=FIRST_COMMIT_MS * 2)
    metadata = table_metadata.add_snapshot(snapshot, set_current=False)
    assert metadata.current_snapshot_id == THIRD_SNAPSHOT_ID
    assert metadata.last_sequence_number == 4
    assert metadata.snapshot_by_id(2000) == snapshot
    assert len(metadata.snapshot_log) == 3


def test_add_duplicate_snapshot(table_metadata: TableMetadata) -> None:
    with pytest.raises(ValueError, match="Snapshot with id 1001 already exists"):
        table_metadata.add_snapshot(Snapshot(snapshot_id=FIRST_SNAPSHOT_ID, timestamp_ms=FIRST_COMMIT_MS))


def test_set_unknown_current_snapshot(table_metadata: TableMetadata) -> None:
    with pytest.raises(ValueError, match="Cannot set current snapshot to unknown snapshot id: 42"):
        table_metadata.set_current_snapshot(42)


def test_add_schema(table_schema: Schema) -> None:
    metadata = new_table_metadata(table_schema, PartitionSpec(), location="/tmp/t")
    evolved = Schema(*table_schema.fields, NestedField(3, "category", StringType(), required=False))

    metadata = metadata.add_schema(evolved)
    assert [schema.schema_id for schema in metadata.schemas] == [0, 1]
    assert metadata.current_schema_id == 1
    assert metadata.last_column_id == 3

    metadata = metadata.add_schema(table_schema, set_current=False)
    assert metadata.current_schema_id == 1
    assert metadata.schema_by_id(2) is not None
    assert metadata.schema_by_id(3) is None


def test_add_partition_spec(table_schema: Schema, partition_spec: PartitionSpec) -> None:
    metadata = new_table_metadata(table_schema, partition_spec, location="/tmp/t")
    assert metadata.last_partition_id == 1000

    spec = PartitionSpec(PartitionField(source_id=2, field_id=1001, transform=TruncateTransform(4), name="data_trunc"))
    metadata = metadata.add_partition_spec(spec)
    assert metadata.default_spec_id == 1
    assert metadata.last_partition_id == 1001
    assert set(metadata.specs()) == {0, 1}


def test_specs_struct(table_schema: Schema, partition_spec: PartitionSpec) -> None:
    spec = PartitionSpec(PartitionField(source_id=2, field_id=1001, transform=TruncateTransform(4), name="data_trunc"))
    metadata = new_table_metadata(table_schema, partition_spec, location="/tmp/t").add_partition_spec(spec)

    struct = metadata.specs_struct()
    assert [(field.field_id, field.name, field.field_type, field.required) for field in struct.fields] == [
        (1000, "id", LongType(), False),
        (1001, "data_trunc", StringType(), False),
    ]


def test_specs_struct_with_dropped_source_column(table_schema: Schema, partition_spec: PartitionSpec) -> None:
    metadata = new_table_metadata(table_schema, partition_spec, location="/tmp/t")
    metadata = metadata.add_schema(Schema(NestedField(2, "data", StringType(), required=False)))

    assert metadata.schema().find_column_name(1) is None
    # the type of the dropped column is found in an older schema
    assert metadata.specs_struct().fields[0].field_type == LongType()


def test_specs_struct_unpartitioned(table_schema: Schema) -> None:
    assert new_table_metadata(table_schema, PartitionSpec(), location="/tmp/t").specs_struct().fields == ()


def test_add_metadata_log_entry(table_metadata: TableMetadata) -> None:
    metadata = table_metadata.add_metadata_log_entry("/tmp/t/metadata/00000-abc.metadata.json", FIRST_COMMIT_MS)
    assert metadata.metadata_log[0].metadata_file == "/tmp/t/metadata/00000-abc.metadata.json"


def test_serialize_round_trip(table_metadata: TableMetadata) -> None:
    serialized = table_metadata.model_dump_json()
    data = json.loads(serialized)

    assert data["format-version"] == 2
    assert data["current-snapshot-id"] == THIRD_SNAPSHOT_ID
    assert data["snapshots"][0]["summary"] == {"operation": "append", "added-data-files": "2", "added-records": "15"}
    assert "parent-snapshot-id" not in data["snapshots"][0]

    parsed = TableMetadataUtil.parse_raw(serialized)
    assert parsed.model_dump() == table_metadata.model_dump()
    assert parsed.snapshots == table_metadata.snapshots
