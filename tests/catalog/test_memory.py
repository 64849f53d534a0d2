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
# pylint:disable=redefined-outer-name
from pathlib import Path

import pytest

from pymetatables.catalog import Catalog, load_catalog
from pymetatables.catalog.memory import InMemoryCatalog
from pymetatables.exceptions import (
    NoSuchMetadataTableError,
    NoSuchSnapshotError,
    NoSuchTableError,
    TableAlreadyExistsError,
)
from pymetatables.partitioning import PartitionSpec
from pymetatables.schema import Schema
from pymetatables.table import StaticTable
from pymetatables.table.metadata_tables import MetadataTableType
from pymetatables.table.snapshots import Operation, Snapshot, Summary

TEST_TABLE_IDENTIFIER = ("db", "events")
SNAPSHOT_ID = 3051729675574597004
COMMIT_MS = 1_700_000_000_000


@pytest.fixture
def catalog(tmp_path: Path) -> InMemoryCatalog:
    return InMemoryCatalog("test.in_memory.catalog", warehouse=str(tmp_path))


@pytest.fixture
def snapshot() -> Snapshot:
    return Snapshot(
        snapshot_id=SNAPSHOT_ID,
        sequence_number=1,
        timestamp_ms=COMMIT_MS,
        summary=Summary(Operation.APPEND, **{"added-data-files": "0"}),
        schema_id=0,
    )


def test_create_table(catalog: InMemoryCatalog, table_schema: Schema, partition_spec: PartitionSpec, tmp_path: Path) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema, partition_spec=partition_spec)

    assert table.name() == TEST_TABLE_IDENTIFIER
    assert table.location() == f"{tmp_path}/db/events"
    assert table.spec() == partition_spec
    assert table.current_snapshot() is None
    assert Catalog._parse_metadata_version(table.metadata_location) == 0
    assert table.io.new_input(table.metadata_location).exists()


def test_create_table_with_location(catalog: InMemoryCatalog, table_schema: Schema, tmp_path: Path) -> None:
    table = catalog.create_table("db.events", table_schema, location=f"{tmp_path}/elsewhere/")
    assert table.location() == f"{tmp_path}/elsewhere"


def test_create_table_already_exists(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    with pytest.raises(TableAlreadyExistsError, match="Table already exists"):
        catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)


def test_load_table(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    given_table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    table = catalog.load_table(TEST_TABLE_IDENTIFIER)
    assert table == given_table
    assert table is not given_table


def test_load_table_with_catalog_name(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    assert catalog.load_table(("test.in_memory.catalog", "db", "events")).name() == TEST_TABLE_IDENTIFIER


def test_load_missing_table(catalog: InMemoryCatalog) -> None:
    with pytest.raises(NoSuchTableError, match="Table does not exist"):
        catalog.load_table(TEST_TABLE_IDENTIFIER)
    assert not catalog.table_exists(TEST_TABLE_IDENTIFIER)


def test_commit_metadata(catalog: InMemoryCatalog, table_schema: Schema, snapshot: Snapshot) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    previous_location = table.metadata_location

    committed = catalog.commit_metadata(table, table.metadata.add_snapshot(snapshot))

    assert Catalog._parse_metadata_version(committed.metadata_location) == 1
    assert [entry.metadata_file for entry in committed.metadata.metadata_log] == [previous_location]
    assert catalog.current_snapshot_id(TEST_TABLE_IDENTIFIER) == SNAPSHOT_ID
    # the table handed out before the commit keeps its view
    assert table.current_snapshot() is None
    assert table.refresh().current_snapshot() == snapshot


def test_commit_without_changes(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    assert catalog.commit_metadata(table, table.metadata).metadata_location == table.metadata_location


def test_committed_metadata_is_readable_without_catalog(
    catalog: InMemoryCatalog, table_schema: Schema, snapshot: Snapshot
) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    committed = catalog.commit_metadata(table, table.metadata.add_snapshot(snapshot))

    static_table = StaticTable.from_metadata(committed.metadata_location)
    assert static_table.metadata == committed.metadata
    assert static_table.current_snapshot() == snapshot


def test_register_table(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    registered = catalog.register_table(("db", "events_copy"), table.metadata_location)

    assert registered.metadata == table.metadata
    with pytest.raises(TableAlreadyExistsError):
        catalog.register_table(("db", "events_copy"), table.metadata_location)


def test_drop_table(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    catalog.drop_table(TEST_TABLE_IDENTIFIER)
    assert not catalog.table_exists(TEST_TABLE_IDENTIFIER)

    with pytest.raises(NoSuchTableError):
        catalog.drop_table(TEST_TABLE_IDENTIFIER)


def test_list_tables_and_namespaces(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    catalog.create_table(("db", "events"), table_schema)
    catalog.create_table(("db", "users"), table_schema)
    catalog.create_table(("other", "events"), table_schema)

    assert catalog.list_tables("db") == [("db", "events"), ("db", "users")]
    assert len(catalog.list_tables()) == 3
    assert catalog.list_namespaces() == [("db",), ("other",)]


def test_load_metadata_table(catalog: InMemoryCatalog, table_schema: Schema, snapshot: Snapshot) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    catalog.commit_metadata(table, table.metadata.add_snapshot(snapshot))

    metadata_table = catalog.load_metadata_table("db.events.snapshots")
    assert metadata_table.table_type == MetadataTableType.SNAPSHOTS

    df = metadata_table.to_arrow()
    assert df["snapshot_id"].to_pylist() == [SNAPSHOT_ID]
    assert df["operation"].to_pylist() == ["append"]
    assert df["manifest_list"].to_pylist() == [None]


def test_load_metadata_table_unknown(catalog: InMemoryCatalog, table_schema: Schema) -> None:
    catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    with pytest.raises(NoSuchMetadataTableError, match="Unknown metadata table: refs"):
        catalog.load_metadata_table("db.events.refs")

    with pytest.raises(NoSuchMetadataTableError, match="Expected <table>.<metadata table>"):
        catalog.load_metadata_table("entries")


def test_load_metadata_table_of_missing_table(catalog: InMemoryCatalog) -> None:
    with pytest.raises(NoSuchTableError):
        catalog.load_metadata_table("db.missing.files")


def test_snapshots(catalog: InMemoryCatalog, table_schema: Schema, snapshot: Snapshot) -> None:
    table = catalog.create_table(TEST_TABLE_IDENTIFIER, table_schema)
    assert catalog.current_snapshot_id(TEST_TABLE_IDENTIFIER) is None

    catalog.commit_metadata(table, table.metadata.add_snapshot(snapshot))
    assert catalog.snapshot_by_id(TEST_TABLE_IDENTIFIER, SNAPSHOT_ID) == snapshot
    assert catalog.all_snapshots(TEST_TABLE_IDENTIFIER) == [snapshot]

    with pytest.raises(NoSuchSnapshotError, match="Cannot find snapshot with ID 42"):
        catalog.snapshot_by_id(TEST_TABLE_IDENTIFIER, 42)


def test_metadata_location_version() -> None:
    assert Catalog._parse_metadata_version("s3://b/t/metadata/00012-6c97e413-d51b-4538-ac70-12fe2a85cb83.metadata.json") == 12
    assert Catalog._parse_metadata_version("s3://b/t/metadata/v1.metadata.json") == -1
    with pytest.raises(ValueError, match="must be a non-negative integer"):
        Catalog._get_metadata_location("s3://b/t", -1)


def test_load_catalog(tmp_path: Path) -> None:
    catalog = load_catalog("local", type="in-memory", warehouse=str(tmp_path))
    assert isinstance(catalog, InMemoryCatalog)
    assert catalog.name == "local"
    assert catalog.properties["warehouse"] == str(tmp_path)


def test_load_catalog_inferred_type(tmp_path: Path) -> None:
    assert isinstance(load_catalog("local", warehouse=str(tmp_path)), InMemoryCatalog)
