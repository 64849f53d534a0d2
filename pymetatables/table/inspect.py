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
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

import pyarrow as pa
import pyarrow.compute as pc

from pymetatables.conversions import from_bytes
from pymetatables.exceptions import ValidationError
from pymetatables.expressions import AlwaysTrue, BooleanExpression
from pymetatables.expressions.visitors import bind
from pymetatables.io.pyarrow import expression_to_pyarrow, schema_to_pyarrow
from pymetatables.manifest import (
    DataFile,
    DataFileContent,
    ManifestContent,
    ManifestEntry,
    ManifestFile,
    PartitionFieldSummary,
)
from pymetatables.partitioning import PartitionSpec
from pymetatables.schema import Schema
from pymetatables.table.metadata import TableMetadata
from pymetatables.table.resolver import resolve_snapshot
from pymetatables.table.snapshots import Snapshot
from pymetatables.types import (
    BinaryType,
    BooleanType,
    IntegerType,
    ListType,
    LongType,
    MapType,
    NestedField,
    StringType,
    StructType,
    TimestamptzType,
)
from pymetatables.utils.concurrent import ExecutorFactory
from pymetatables.utils.datetime import millis_to_datetime
from pymetatables.utils.properties import METADATA_SCAN_MAX_WORKERS, property_as_int
from pymetatables.utils.singleton import _convert_to_hashable_type
from pymetatables.utils.snapshot import ancestor_ids

if TYPE_CHECKING:
    from pymetatables.table import Table

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALWAYS_TRUE = AlwaysTrue()

DATA_ONLY = {DataFileContent.DATA}
DELETES_ONLY = {DataFileContent.POSITION_DELETES, DataFileContent.EQUALITY_DELETES}


def _data_file_fields(partition_type: StructType) -> List[NestedField]:
    fields = [
        NestedField(134, "content", IntegerType(), required=True),
        NestedField(100, "file_path", StringType(), required=True),
        NestedField(101, "file_format", StringType(), required=True),
        NestedField(141, "spec_id", IntegerType(), required=True),
        NestedField(102, "partition", partition_type, required=True),
        NestedField(103, "record_count", LongType(), required=True),
        NestedField(104, "file_size_in_bytes", LongType(), required=True),
        NestedField(108, "column_sizes", MapType(117, IntegerType(), 118, LongType()), required=False),
        NestedField(109, "value_counts", MapType(119, IntegerType(), 120, LongType()), required=False),
        NestedField(110, "null_value_counts", MapType(121, IntegerType(), 122, LongType()), required=False),
        NestedField(137, "nan_value_counts", MapType(138, IntegerType(), 139, LongType()), required=False),
        NestedField(125, "lower_bounds", MapType(126, IntegerType(), 127, BinaryType()), required=False),
        NestedField(128, "upper_bounds", MapType(129, IntegerType(), 130, BinaryType()), required=False),
        NestedField(131, "key_metadata", BinaryType(), required=False),
        NestedField(132, "split_offsets", ListType(133, LongType()), required=False),
        NestedField(135, "equality_ids", ListType(136, IntegerType()), required=False),
        NestedField(140, "sort_order_id", IntegerType(), required=False),
    ]
    # unpartitioned tables have no partition column
    if not partition_type.fields:
        return [field for field in fields if field.field_id != 102]
    return fields


def entries_schema(partition_type: StructType) -> Schema:
    return Schema(
        NestedField(0, "status", IntegerType(), required=True),
        NestedField(1, "snapshot_id", LongType(), required=True),
        NestedField(3, "sequence_number", LongType(), required=True),
        NestedField(4, "file_sequence_number", LongType(), required=True),
        NestedField(2, "data_file", StructType(*_data_file_fields(partition_type)), required=True),
    )


def files_schema(partition_type: StructType) -> Schema:
    return Schema(*_data_file_fields(partition_type))


_MANIFEST_FIELDS = (
    NestedField(14, "content", IntegerType(), required=True),
    NestedField(1, "path", StringType(), required=True),
    NestedField(2, "length", LongType(), required=True),
    NestedField(3, "partition_spec_id", IntegerType(), required=True),
    NestedField(4, "added_snapshot_id", LongType(), required=False),
    NestedField(5, "added_data_files_count", IntegerType(), required=True),
    NestedField(6, "existing_data_files_count", IntegerType(), required=True),
    NestedField(7, "deleted_data_files_count", IntegerType(), required=True),
    NestedField(15, "added_delete_files_count", IntegerType(), required=True),
    NestedField(16, "existing_delete_files_count", IntegerType(), required=True),
    NestedField(17, "deleted_delete_files_count", IntegerType(), required=True),
    NestedField(
        8,
        "partition_summaries",
        ListType(
            9,
            StructType(
                NestedField(10, "contains_null", BooleanType(), required=True),
                NestedField(11, "contains_nan", BooleanType(), required=False),
                NestedField(12, "lower_bound", StringType(), required=False),
                NestedField(13, "upper_bound", StringType(), required=False),
            ),
            element_required=True,
        ),
        required=True,
    ),
)

MANIFESTS_SCHEMA = Schema(*_MANIFEST_FIELDS)

ALL_MANIFESTS_SCHEMA = Schema(
    *_MANIFEST_FIELDS,
    NestedField(18, "reference_snapshot_id", LongType(), required=True),
)

HISTORY_SCHEMA = Schema(
    NestedField(1, "made_current_at", TimestamptzType(), required=True),
    NestedField(2, "snapshot_id", LongType(), required=True),
    NestedField(3, "parent_id", LongType(), required=False),
    NestedField(4, "is_current_ancestor", BooleanType(), required=True),
)

SNAPSHOTS_SCHEMA = Schema(
    NestedField(1, "committed_at", TimestamptzType(), required=True),
    NestedField(2, "snapshot_id", LongType(), required=True),
    NestedField(3, "parent_id", LongType(), required=False),
    NestedField(4, "operation", StringType(), required=False),
    NestedField(5, "manifest_list", StringType(), required=False),
    NestedField(6, "summary", MapType(7, StringType(), 8, StringType(), value_required=False), required=False),
)


def partitions_schema(partition_type: StructType) -> Schema:
    counts = (
        NestedField(2, "record_count", LongType(), required=True),
        NestedField(3, "file_count", IntegerType(), required=True),
    )
    if not partition_type.fields:
        return Schema(*counts)
    return Schema(
        NestedField(1, "partition", partition_type, required=True),
        NestedField(4, "spec_id", IntegerType(), required=True),
        *counts,
    )


def _concat(tables: Iterable[pa.Table], arrow_schema: pa.Schema) -> pa.Table:
    tables = list(tables)
    if not tables:
        return arrow_schema.empty_table()
    return pa.concat_tables(tables)


class InspectTable:
    """Virtual tables over the metadata of a table.

    Every view is returned as a pyarrow Table with a fixed schema. The optional row filter is bound
    against that schema by name and applied to each batch of rows before they are combined.

    Attributes:
        tbl(table): The table object to be inspected.
    """

    tbl: Table

    def __init__(self, tbl: Table) -> None:
        self.tbl = tbl

    def _map(self, func: Callable[[Any], T], items: Iterable[Any]) -> List[T]:
        """Run the function over the items on the shared pool, or on a pool sized by the table property."""
        max_workers = property_as_int(self.tbl.properties, METADATA_SCAN_MAX_WORKERS)
        if max_workers is None:
            return list(ExecutorFactory.get_or_create().map(func, items))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(func, items))

    def _predicate(
        self, schema: Schema, row_filter: BooleanExpression, case_sensitive: bool
    ) -> Optional[pc.Expression]:
        bound = bind(schema, row_filter, case_sensitive)
        if isinstance(bound, AlwaysTrue):
            return None
        return expression_to_pyarrow(bound)

    @staticmethod
    def _to_table(rows: List[Dict[str, Any]], arrow_schema: pa.Schema, predicate: Optional[pc.Expression]) -> pa.Table:
        table = pa.Table.from_pylist(rows, schema=arrow_schema)
        if predicate is not None:
            table = table.filter(predicate)
        return table

    @staticmethod
    def _spec(specs: Dict[int, PartitionSpec], spec_id: int, location: str) -> PartitionSpec:
        if spec := specs.get(spec_id):
            return spec
        raise ValidationError(f"Cannot find partition spec {spec_id}, referenced by {location}")

    @staticmethod
    def _partition_row(partition_type: StructType, spec: PartitionSpec, data_file: DataFile) -> Dict[str, Any]:
        """Spread the partition tuple of the file over the union of all partition fields."""
        names = {field.field_id: field.name for field in partition_type.fields}
        row: Dict[str, Any] = {name: None for name in names.values()}
        partition = data_file.partition
        for pos, field in enumerate(spec.fields):
            if pos < len(partition):
                row[names[field.field_id]] = partition[pos]
        return row

    def _data_file_row(
        self, metadata: TableMetadata, partition_type: StructType, data_file: DataFile, location: str
    ) -> Dict[str, Any]:
        spec_id = data_file.spec_id if data_file.spec_id is not None else metadata.default_spec_id
        row = {
            "content": data_file.content.value,
            "file_path": data_file.file_path,
            "file_format": data_file.file_format.value,
            "spec_id": spec_id,
            "record_count": data_file.record_count,
            "file_size_in_bytes": data_file.file_size_in_bytes,
            "column_sizes": data_file.column_sizes,
            "value_counts": data_file.value_counts,
            "null_value_counts": data_file.null_value_counts,
            "nan_value_counts": data_file.nan_value_counts,
            "lower_bounds": data_file.lower_bounds,
            "upper_bounds": data_file.upper_bounds,
            "key_metadata": data_file.key_metadata,
            "split_offsets": data_file.split_offsets,
            "equality_ids": data_file.equality_ids,
            "sort_order_id": data_file.sort_order_id,
        }
        if partition_type.fields:
            spec = self._spec(metadata.specs(), spec_id, location)
            row["partition"] = self._partition_row(partition_type, spec, data_file)
        return row

    def _entry_row(
        self, metadata: TableMetadata, partition_type: StructType, entry: ManifestEntry, location: str
    ) -> Dict[str, Any]:
        return {
            "status": entry.status.value,
            "snapshot_id": entry.snapshot_id,
            "sequence_number": entry.sequence_number,
            "file_sequence_number": entry.file_sequence_number,
            "data_file": self._data_file_row(metadata, partition_type, entry.data_file, location),
        }

    def _selected_snapshot(
        self, metadata: TableMetadata, snapshot_id: Optional[int], as_of_timestamp: Optional[int]
    ) -> Optional[Snapshot]:
        """Return the snapshot a single-snapshot view reads, None for a table without snapshots."""
        if snapshot_id is None and as_of_timestamp is None and metadata.current_snapshot_id is None:
            return None
        return resolve_snapshot(metadata, snapshot_id=snapshot_id, as_of_timestamp=as_of_timestamp)

    def _all_snapshot_manifests(self, metadata: TableMetadata) -> List[Tuple[Snapshot, ManifestFile]]:
        return [(snapshot, manifest) for snapshot in metadata.snapshots for manifest in snapshot.manifests(self.tbl.io)]

    def _entries_from_manifest(
        self,
        metadata: TableMetadata,
        manifest: ManifestFile,
        arrow_schema: pa.Schema,
        predicate: Optional[pc.Expression],
    ) -> pa.Table:
        partition_type = metadata.specs_struct()
        rows = [
            self._entry_row(metadata, partition_type, entry, manifest.manifest_path)
            for entry in manifest.iter_manifest_entries(self.tbl.io, discard_deleted=False)
        ]
        return self._to_table(rows, arrow_schema, predicate)

    def entries(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        """Generate a table with every entry of every manifest of a snapshot.

        Deleted entries are included, the status column tells them apart. The snapshot id and the
        sequence numbers are the ones inherited from the manifest when the entry does not carry them.

        Args:
            snapshot_id (Optional[int]): The snapshot to read, the current snapshot when omitted.
            as_of_timestamp (Optional[int]): Read the snapshot that was current at this time in milliseconds.
            row_filter (BooleanExpression): Only return the rows that match.
            case_sensitive (bool): Whether the filter matches column names case sensitively.

        Returns:
            pa.Table: One row per manifest entry.
        """
        metadata = self.tbl.metadata
        schema = entries_schema(metadata.specs_struct())
        arrow_schema = schema_to_pyarrow(schema)
        predicate = self._predicate(schema, row_filter, case_sensitive)

        snapshot = self._selected_snapshot(metadata, snapshot_id, as_of_timestamp)
        if snapshot is None:
            return arrow_schema.empty_table()

        manifests = snapshot.manifests(self.tbl.io)
        logger.debug("Reading entries of %d manifests of snapshot %s", len(manifests), snapshot.snapshot_id)
        return _concat(
            self._map(lambda manifest: self._entries_from_manifest(metadata, manifest, arrow_schema, predicate), manifests),
            arrow_schema,
        )

    def all_entries(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        """Generate a table with the entries of the manifests of every snapshot.

        A manifest that is listed by more than one snapshot is read once per snapshot.
        """
        metadata = self.tbl.metadata
        schema = entries_schema(metadata.specs_struct())
        arrow_schema = schema_to_pyarrow(schema)
        predicate = self._predicate(schema, row_filter, case_sensitive)

        snapshot_manifests = self._all_snapshot_manifests(metadata)
        logger.debug("Reading entries of %d manifests over %d snapshots", len(snapshot_manifests), len(metadata.snapshots))
        return _concat(
            self._map(
                lambda args: self._entries_from_manifest(metadata, args[1], arrow_schema, predicate), snapshot_manifests
            ),
            arrow_schema,
        )

    def _files_from_manifest(
        self,
        metadata: TableMetadata,
        manifest: ManifestFile,
        arrow_schema: pa.Schema,
        predicate: Optional[pc.Expression],
        data_file_filter: Optional[Set[DataFileContent]] = None,
    ) -> pa.Table:
        partition_type = metadata.specs_struct()
        rows = [
            self._data_file_row(metadata, partition_type, entry.data_file, manifest.manifest_path)
            for entry in manifest.iter_manifest_entries(self.tbl.io, discard_deleted=True)
            if data_file_filter is None or entry.data_file.content in data_file_filter
        ]
        return self._to_table(rows, arrow_schema, predicate)

    def _files(
        self,
        snapshot_id: Optional[int],
        as_of_timestamp: Optional[int],
        row_filter: BooleanExpression,
        case_sensitive: bool,
        data_file_filter: Optional[Set[DataFileContent]] = None,
    ) -> pa.Table:
        metadata = self.tbl.metadata
        schema = files_schema(metadata.specs_struct())
        arrow_schema = schema_to_pyarrow(schema)
        predicate = self._predicate(schema, row_filter, case_sensitive)

        snapshot = self._selected_snapshot(metadata, snapshot_id, as_of_timestamp)
        if snapshot is None:
            return arrow_schema.empty_table()

        return _concat(
            self._map(
                lambda manifest: self._files_from_manifest(metadata, manifest, arrow_schema, predicate, data_file_filter),
                snapshot.manifests(self.tbl.io),
            ),
            arrow_schema,
        )

    def files(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        """Generate a table with the live data and delete files of a snapshot.

        Returns:
            pa.Table: One row per file that is added or existing in the snapshot.
        """
        return self._files(snapshot_id, as_of_timestamp, row_filter, case_sensitive)

    def data_files(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        return self._files(snapshot_id, as_of_timestamp, row_filter, case_sensitive, DATA_ONLY)

    def delete_files(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        return self._files(snapshot_id, as_of_timestamp, row_filter, case_sensitive, DELETES_ONLY)

    def _all_files(
        self,
        row_filter: BooleanExpression,
        case_sensitive: bool,
        data_file_filter: Optional[Set[DataFileContent]] = None,
    ) -> pa.Table:
        metadata = self.tbl.metadata
        schema = files_schema(metadata.specs_struct())
        arrow_schema = schema_to_pyarrow(schema)
        predicate = self._predicate(schema, row_filter, case_sensitive)

        return _concat(
            self._map(
                lambda args: self._files_from_manifest(metadata, args[1], arrow_schema, predicate, data_file_filter),
                self._all_snapshot_manifests(metadata),
            ),
            arrow_schema,
        )

    def all_files(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        return self._all_files(row_filter, case_sensitive)

    def all_data_files(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        """Generate a table with the live data files of every snapshot.

        A file that is live in more than one snapshot is listed once for each of them.
        """
        return self._all_files(row_filter, case_sensitive, DATA_ONLY)

    def all_delete_files(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        return self._all_files(row_filter, case_sensitive, DELETES_ONLY)

    def _partition_summaries_to_rows(
        self, partition_type: StructType, spec: PartitionSpec, partition_summaries: List[PartitionFieldSummary]
    ) -> List[Dict[str, Any]]:
        field_types = {field.field_id: field.field_type for field in partition_type.fields}
        rows = []
        for field, field_summary in zip(spec.fields, partition_summaries):
            partition_field_type = field_types.get(field.field_id, StringType())
            lower_bound = (
                field.transform.to_human_string(partition_field_type, from_bytes(partition_field_type, field_summary.lower_bound))
                if field_summary.lower_bound is not None
                else None
            )
            upper_bound = (
                field.transform.to_human_string(partition_field_type, from_bytes(partition_field_type, field_summary.upper_bound))
                if field_summary.upper_bound is not None
                else None
            )
            rows.append(
                {
                    "contains_null": field_summary.contains_null,
                    "contains_nan": field_summary.contains_nan,
                    "lower_bound": lower_bound,
                    "upper_bound": upper_bound,
                }
            )
        return rows

    def _manifest_row(self, metadata: TableMetadata, manifest: ManifestFile) -> Dict[str, Any]:
        spec = self._spec(metadata.specs(), manifest.partition_spec_id, manifest.manifest_path)
        is_data_file = manifest.content == ManifestContent.DATA
        is_delete_file = manifest.content == ManifestContent.DELETES
        return {
            "content": manifest.content.value,
            "path": manifest.manifest_path,
            "length": manifest.manifest_length,
            "partition_spec_id": manifest.partition_spec_id,
            "added_snapshot_id": manifest.added_snapshot_id,
            "added_data_files_count": (manifest.added_files_count or 0) if is_data_file else 0,
            "existing_data_files_count": (manifest.existing_files_count or 0) if is_data_file else 0,
            "deleted_data_files_count": (manifest.deleted_files_count or 0) if is_data_file else 0,
            "added_delete_files_count": (manifest.added_files_count or 0) if is_delete_file else 0,
            "existing_delete_files_count": (manifest.existing_files_count or 0) if is_delete_file else 0,
            "deleted_delete_files_count": (manifest.deleted_files_count or 0) if is_delete_file else 0,
            "partition_summaries": self._partition_summaries_to_rows(metadata.specs_struct(), spec, manifest.partitions)
            if manifest.partitions
            else [],
        }

    def manifests(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        """Generate a table with the manifest files of a snapshot.

        The bounds of the partition summaries are rendered as the human readable value of the
        partition transform.
        """
        metadata = self.tbl.metadata
        arrow_schema = schema_to_pyarrow(MANIFESTS_SCHEMA)
        predicate = self._predicate(MANIFESTS_SCHEMA, row_filter, case_sensitive)

        snapshot = self._selected_snapshot(metadata, snapshot_id, as_of_timestamp)
        if snapshot is None:
            return arrow_schema.empty_table()

        rows = [self._manifest_row(metadata, manifest) for manifest in snapshot.manifests(self.tbl.io)]
        return self._to_table(rows, arrow_schema, predicate)

    def _manifests_of_snapshot(
        self, metadata: TableMetadata, snapshot: Snapshot, arrow_schema: pa.Schema, predicate: Optional[pc.Expression]
    ) -> pa.Table:
        rows = [
            {**self._manifest_row(metadata, manifest), "reference_snapshot_id": snapshot.snapshot_id}
            for manifest in snapshot.manifests(self.tbl.io)
        ]
        return self._to_table(rows, arrow_schema, predicate)

    def all_manifests(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        """Generate a table with the manifests of every snapshot, tagged with the snapshot that lists them."""
        metadata = self.tbl.metadata
        arrow_schema = schema_to_pyarrow(ALL_MANIFESTS_SCHEMA)
        predicate = self._predicate(ALL_MANIFESTS_SCHEMA, row_filter, case_sensitive)

        return _concat(
            self._map(
                lambda snapshot: self._manifests_of_snapshot(metadata, snapshot, arrow_schema, predicate), metadata.snapshots
            ),
            arrow_schema,
        )

    def _process_manifest(
        self, metadata: TableMetadata, partition_type: StructType, manifest: ManifestFile
    ) -> Dict[Tuple[Any, ...], Dict[str, Any]]:
        """Count the live data files of a manifest per partition."""
        partitions_map: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
        specs = metadata.specs()
        self._spec(specs, manifest.partition_spec_id, manifest.manifest_path)

        for entry in manifest.iter_manifest_entries(self.tbl.io, discard_deleted=True):
            data_file = entry.data_file
            if data_file.content != DataFileContent.DATA:
                continue

            spec_id = data_file.spec_id if data_file.spec_id is not None else manifest.partition_spec_id
            partition_record_dict = self._partition_row(
                partition_type, self._spec(specs, spec_id, manifest.manifest_path), data_file
            )
            partition_record_key = (spec_id, _convert_to_hashable_type(partition_record_dict))
            if partition_record_key not in partitions_map:
                partitions_map[partition_record_key] = {
                    "partition": partition_record_dict,
                    "spec_id": spec_id,
                    "record_count": 0,
                    "file_count": 0,
                }

            partition_row = partitions_map[partition_record_key]
            partition_row["record_count"] += data_file.record_count
            partition_row["file_count"] += 1

        return partitions_map

    def partitions(
        self,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        row_filter: BooleanExpression = ALWAYS_TRUE,
        case_sensitive: bool = True,
    ) -> pa.Table:
        """Generate a table with the record and file counts of the live data files per partition.

        Files are grouped by spec id and partition tuple. The filter is applied to the grouped rows.
        An unpartitioned table yields a single row with the totals.

        Raises:
            ValidationError: When a manifest uses a partition spec that the table does not know.
        """
        metadata = self.tbl.metadata
        partition_type = metadata.specs_struct()
        schema = partitions_schema(partition_type)
        arrow_schema = schema_to_pyarrow(schema)
        predicate = self._predicate(schema, row_filter, case_sensitive)

        snapshot = self._selected_snapshot(metadata, snapshot_id, as_of_timestamp)
        if snapshot is None:
            return arrow_schema.empty_table()

        local_partitions_maps = self._map(
            lambda manifest: self._process_manifest(metadata, partition_type, manifest), snapshot.manifests(self.tbl.io)
        )

        partitions_map: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
        for local_map in local_partitions_maps:
            for partition_record_key, partition_row in local_map.items():
                if partition_record_key not in partitions_map:
                    partitions_map[partition_record_key] = partition_row
                else:
                    existing = partitions_map[partition_record_key]
                    existing["record_count"] += partition_row["record_count"]
                    existing["file_count"] += partition_row["file_count"]

        if partition_type.fields:
            rows = list(partitions_map.values())
        else:
            rows = [
                {
                    "record_count": sum(row["record_count"] for row in partitions_map.values()),
                    "file_count": sum(row["file_count"] for row in partitions_map.values()),
                }
            ]

        return self._to_table(rows, arrow_schema, predicate)

    def history(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        """Generate a table with one row per entry of the snapshot log.

        Rollbacks show up as another entry for a snapshot that was current before. Whether a snapshot
        is an ancestor of the current snapshot is decided against the current snapshot at the time of
        the call.
        """
        metadata = self.tbl.metadata
        arrow_schema = schema_to_pyarrow(HISTORY_SCHEMA)
        predicate = self._predicate(HISTORY_SCHEMA, row_filter, case_sensitive)

        ancestors = set(ancestor_ids(metadata.current_snapshot_id, metadata.snapshot_by_id))

        history = []
        for snapshot_entry in metadata.snapshot_log:
            snapshot = metadata.snapshot_by_id(snapshot_entry.snapshot_id)

            history.append(
                {
                    "made_current_at": millis_to_datetime(snapshot_entry.timestamp_ms),
                    "snapshot_id": snapshot_entry.snapshot_id,
                    "parent_id": snapshot.parent_snapshot_id if snapshot else None,
                    "is_current_ancestor": snapshot_entry.snapshot_id in ancestors,
                }
            )

        return self._to_table(history, arrow_schema, predicate)

    def snapshots(self, row_filter: BooleanExpression = ALWAYS_TRUE, case_sensitive: bool = True) -> pa.Table:
        """Generate a table with one row per snapshot that is still part of the metadata."""
        metadata = self.tbl.metadata
        arrow_schema = schema_to_pyarrow(SNAPSHOTS_SCHEMA)
        predicate = self._predicate(SNAPSHOTS_SCHEMA, row_filter, case_sensitive)

        snapshots = []
        for snapshot in metadata.snapshots:
            if summary := snapshot.summary:
                operation = summary.operation.value
                additional_properties = summary.additional_properties
            else:
                operation = None
                additional_properties = None

            snapshots.append(
                {
                    "committed_at": millis_to_datetime(snapshot.timestamp_ms),
                    "snapshot_id": snapshot.snapshot_id,
                    "parent_id": snapshot.parent_snapshot_id,
                    "operation": operation,
                    "manifest_list": snapshot.manifest_list,
                    "summary": additional_properties,
                }
            )

        return self._to_table(snapshots, arrow_schema, predicate)
