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
"""Fixtures that write a small table with real Avro manifests into a temporary directory.

The table has three snapshots on one lineage:

1. append: manifest m1 with file a (id=1, 10 rows) and file b (id=2, 5 rows)
2. append: manifest m2 with file c (id=1, 3 rows), written without snapshot id and sequence numbers
3. delete: manifest m3 rewrites m1, keeping a and deleting b; m2 is carried over

The second snapshot adds a column, so the first snapshot has an older schema.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from pymetatables.conversions import to_bytes
from pymetatables.io import FileIO
from pymetatables.io.pyarrow import PyArrowFileIO
from pymetatables.manifest import (
    DataFile,
    FileFormat,
    ManifestEntry,
    ManifestEntryStatus,
    ManifestFile,
    write_manifest,
    write_manifest_list,
)
from pymetatables.partitioning import PartitionSpec, identity_spec
from pymetatables.schema import Schema
from pymetatables.table import Table
from pymetatables.table.metadata import TableMetadata, new_table_metadata
from pymetatables.table.snapshots import Operation, Snapshot, Summary
from pymetatables.typedef import Record
from pymetatables.types import LongType, NestedField, StringType

FIRST_SNAPSHOT_ID = 1001
SECOND_SNAPSHOT_ID = 1002
THIRD_SNAPSHOT_ID = 1003

FIRST_COMMIT_MS = 1_700_000_000_000
SECOND_COMMIT_MS = FIRST_COMMIT_MS + 3_600_000
THIRD_COMMIT_MS = SECOND_COMMIT_MS + 3_600_000


@pytest.fixture(scope="session")
def table_schema() -> Schema:
    return Schema(
        NestedField(1, "id", LongType(), required=True),
        NestedField(2, "data", StringType(), required=False),
    )


@pytest.fixture(scope="session")
def evolved_schema() -> Schema:
    return Schema(
        NestedField(1, "id", LongType(), required=True),
        NestedField(2, "data", StringType(), required=False),
        NestedField(3, "category", StringType(), required=False),
        schema_id=1,
    )


@pytest.fixture(scope="session")
def partition_spec(table_schema: Schema) -> PartitionSpec:
    return identity_spec(table_schema, "id")


def data_file(location: str, id_value: int, record_count: int) -> DataFile:
    return DataFile(
        file_path=location,
        file_format=FileFormat.PARQUET,
        partition=Record(id_value),
        record_count=record_count,
        file_size_in_bytes=record_count * 100,
        column_sizes={1: record_count * 8, 2: record_count * 16},
        value_counts={1: record_count, 2: record_count},
        null_value_counts={1: 0, 2: 1},
        lower_bounds={1: to_bytes(LongType(), id_value)},
        upper_bounds={1: to_bytes(LongType(), id_value)},
        split_offsets=[4],
        sort_order_id=0,
    )


def write_manifest_file(
    io: FileIO,
    location: str,
    schema: Schema,
    spec: PartitionSpec,
    snapshot_id: int,
    entries: List[ManifestEntry],
) -> ManifestFile:
    with write_manifest(
        format_version=2, spec=spec, schema=schema, output_file=io.new_output(location), snapshot_id=snapshot_id
    ) as writer:
        for entry in entries:
            writer.add_entry(entry)
    return writer.to_manifest_file()


def write_snapshot(
    io: FileIO,
    location: str,
    snapshot_id: int,
    parent_snapshot_id: Optional[int],
    sequence_number: int,
    timestamp_ms: int,
    manifests: List[ManifestFile],
    operation: Operation,
    schema_id: int,
    **summary: Any,
) -> Snapshot:
    with write_manifest_list(
        format_version=2,
        output_file=io.new_output(location),
        snapshot_id=snapshot_id,
        parent_snapshot_id=parent_snapshot_id,
        sequence_number=sequence_number,
    ) as writer:
        writer.add_manifests(manifests)
    return Snapshot(
        snapshot_id=snapshot_id,
        parent_snapshot_id=parent_snapshot_id,
        sequence_number=sequence_number,
        timestamp_ms=timestamp_ms,
        manifest_list=location,
        summary=Summary(operation, **summary),
        schema_id=schema_id,
    )


@pytest.fixture
def io() -> PyArrowFileIO:
    return PyArrowFileIO()


@pytest.fixture
def table_files(tmp_path: Path) -> Dict[str, str]:
    return {
        "a": str(tmp_path / "data" / "id=1" / "a.parquet"),
        "b": str(tmp_path / "data" / "id=2" / "b.parquet"),
        "c": str(tmp_path / "data" / "id=1" / "c.parquet"),
    }


@pytest.fixture
def table_metadata(
    tmp_path: Path,
    io: PyArrowFileIO,
    table_schema: Schema,
    evolved_schema: Schema,
    partition_spec: PartitionSpec,
    table_files: Dict[str, str],
) -> TableMetadata:
    metadata_dir = tmp_path / "metadata"
    metadata_dir.mkdir()
    file_a = data_file(table_files["a"], 1, 10)
    file_b = data_file(table_files["b"], 2, 5)
    file_c = data_file(table_files["c"], 1, 3)

    m1 = write_manifest_file(
        io,
        str(metadata_dir / "m1.avro"),
        table_schema,
        partition_spec,
        FIRST_SNAPSHOT_ID,
        [
            ManifestEntry(ManifestEntryStatus.ADDED, file_a, FIRST_SNAPSHOT_ID, 1, 1),
            ManifestEntry(ManifestEntryStatus.ADDED, file_b, FIRST_SNAPSHOT_ID, 1, 1),
        ],
    )
    first = write_snapshot(
        io,
        str(metadata_dir / "snap-1001.avro"),
        FIRST_SNAPSHOT_ID,
        None,
        1,
        FIRST_COMMIT_MS,
        [m1],
        Operation.APPEND,
        schema_id=0,
        **{"added-data-files": "2", "added-records": "15"},
    )

    # snapshot id and sequence numbers are left for the reader to inherit
    m2 = write_manifest_file(
        io,
        str(metadata_dir / "m2.avro"),
        evolved_schema,
        partition_spec,
        SECOND_SNAPSHOT_ID,
        [ManifestEntry(ManifestEntryStatus.ADDED, file_c)],
    )
    second = write_snapshot(
        io,
        str(metadata_dir / "snap-1002.avro"),
        SECOND_SNAPSHOT_ID,
        FIRST_SNAPSHOT_ID,
        2,
        SECOND_COMMIT_MS,
        [m1, m2],
        Operation.APPEND,
        schema_id=1,
        **{"added-data-files": "1", "added-records": "3"},
    )

    m3 = write_manifest_file(
        io,
        str(metadata_dir / "m3.avro"),
        evolved_schema,
        partition_spec,
        THIRD_SNAPSHOT_ID,
        [
            ManifestEntry(ManifestEntryStatus.EXISTING, file_a, FIRST_SNAPSHOT_ID, 1, 1),
            ManifestEntry(ManifestEntryStatus.DELETED, file_b, THIRD_SNAPSHOT_ID, 1, 1),
        ],
    )
    third = write_snapshot(
        io,
        str(metadata_dir / "snap-1003.avro"),
        THIRD_SNAPSHOT_ID,
        SECOND_SNAPSHOT_ID,
        3,
        THIRD_COMMIT_MS,
        [m3, m2],
        Operation.DELETE,
        schema_id=1,
        **{"deleted-data-files": "1", "deleted-records": "5"},
    )

    metadata = new_table_metadata(table_schema, partition_spec, location=str(tmp_path))
    metadata = metadata._update(last_updated_ms=FIRST_COMMIT_MS - 1000)
    metadata = metadata.add_snapshot(first)
    metadata = metadata.add_schema(evolved_schema)
    metadata = metadata.add_snapshot(second)
    return metadata.add_snapshot(third)


@pytest.fixture
def table(table_metadata: TableMetadata, io: PyArrowFileIO, tmp_path: Path) -> Table:
    return Table(
        identifier=("db", "events"),
        metadata=table_metadata,
        metadata_location=str(tmp_path / "metadata" / "00003-metadata.json"),
        io=io,
    )


@pytest.fixture
def empty_table(table_schema: Schema, partition_spec: PartitionSpec, io: PyArrowFileIO, tmp_path: Path) -> Table:
    return Table(
        identifier=("db", "empty"),
        metadata=new_table_metadata(table_schema, partition_spec, location=str(tmp_path)),
        metadata_location=str(tmp_path / "metadata" / "00000-metadata.json"),
        io=io,
    )


@pytest.fixture
def unpartitioned_table(tmp_path: Path, io: PyArrowFileIO, table_schema: Schema) -> Table:
    spec = PartitionSpec(spec_id=0)
    manifest = write_manifest_file(
        io,
        str(tmp_path / "unpartitioned-m1.avro"),
        table_schema,
        spec,
        FIRST_SNAPSHOT_ID,
        [
            ManifestEntry(
                ManifestEntryStatus.ADDED,
                DataFile(
                    file_path=str(tmp_path / "data" / f"{name}.parquet"),
                    file_format=FileFormat.PARQUET,
                    partition=Record(),
                    record_count=record_count,
                    file_size_in_bytes=record_count * 100,
                ),
                FIRST_SNAPSHOT_ID,
                1,
                1,
            )
            for name, record_count in (("x", 4), ("y", 6))
        ],
    )
    snapshot = write_snapshot(
        io,
        str(tmp_path / "unpartitioned-snap.avro"),
        FIRST_SNAPSHOT_ID,
        None,
        1,
        FIRST_COMMIT_MS,
        [manifest],
        Operation.APPEND,
        schema_id=0,
    )
    metadata = new_table_metadata(table_schema, spec, location=str(tmp_path))
    metadata = metadata._update(last_updated_ms=FIRST_COMMIT_MS - 1000).add_snapshot(snapshot)
    return Table(
        identifier=("db", "flat"),
        metadata=metadata,
        metadata_location=str(tmp_path / "metadata" / "00001-metadata.json"),
        io=io,
    )
