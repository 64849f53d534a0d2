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
"""Metadata tables that can be scanned with a projection, a row filter and a snapshot selector.

Example:
    >>> table.metadata_table("files").scan(row_filter="record_count > 10", selected_fields=("file_path",)).to_arrow()
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Tuple, TypeVar, Union

import pyarrow as pa

from pymetatables.exceptions import NoSuchMetadataTableError
from pymetatables.expressions import AlwaysTrue, And, BooleanExpression
from pymetatables.expressions.parser import parse
from pymetatables.io.pyarrow import schema_to_pyarrow
from pymetatables.schema import Schema
from pymetatables.table.inspect import (
    ALL_MANIFESTS_SCHEMA,
    HISTORY_SCHEMA,
    MANIFESTS_SCHEMA,
    SNAPSHOTS_SCHEMA,
    entries_schema,
    files_schema,
    partitions_schema,
)
from pymetatables.table.metadata import TableMetadata

if TYPE_CHECKING:
    from pymetatables.table import Table

logger = logging.getLogger(__name__)

ALWAYS_TRUE = AlwaysTrue()

S = TypeVar("S", bound="MetadataTableScan")


class MetadataTableType(str, Enum):
    ENTRIES = "entries"
    ALL_ENTRIES = "all_entries"
    FILES = "files"
    ALL_DATA_FILES = "all_data_files"
    MANIFESTS = "manifests"
    ALL_MANIFESTS = "all_manifests"
    PARTITIONS = "partitions"
    HISTORY = "history"
    SNAPSHOTS = "snapshots"

    @classmethod
    def from_name(cls, name: str) -> MetadataTableType:
        """Look up a metadata table by name, ignoring case.

        Raises:
            NoSuchMetadataTableError: When there is no metadata table with that name.
        """
        try:
            return cls(name.lower())
        except ValueError as e:
            raise NoSuchMetadataTableError(f"Unknown metadata table: {name}") from e

    @property
    def supports_time_travel(self) -> bool:
        return self in TIME_TRAVEL_TABLES

    def __repr__(self) -> str:
        """Return the string representation of the MetadataTableType class."""
        return f"MetadataTableType.{self.name}"


TIME_TRAVEL_TABLES = frozenset(
    {
        MetadataTableType.ENTRIES,
        MetadataTableType.FILES,
        MetadataTableType.MANIFESTS,
        MetadataTableType.PARTITIONS,
    }
)


def metadata_table_schema(metadata: TableMetadata, table_type: MetadataTableType) -> Schema:
    """Return the schema of a metadata table, the partition struct depends on the specs of the table."""
    if table_type in (MetadataTableType.ENTRIES, MetadataTableType.ALL_ENTRIES):
        return entries_schema(metadata.specs_struct())
    elif table_type in (MetadataTableType.FILES, MetadataTableType.ALL_DATA_FILES):
        return files_schema(metadata.specs_struct())
    elif table_type == MetadataTableType.MANIFESTS:
        return MANIFESTS_SCHEMA
    elif table_type == MetadataTableType.ALL_MANIFESTS:
        return ALL_MANIFESTS_SCHEMA
    elif table_type == MetadataTableType.PARTITIONS:
        return partitions_schema(metadata.specs_struct())
    elif table_type == MetadataTableType.HISTORY:
        return HISTORY_SCHEMA
    elif table_type == MetadataTableType.SNAPSHOTS:
        return SNAPSHOTS_SCHEMA
    raise ValueError(f"Unknown metadata table type: {table_type}")


def _parse_row_filter(expr: Union[str, BooleanExpression]) -> BooleanExpression:
    return parse(expr) if isinstance(expr, str) else expr


class MetadataTableScan:
    """An immutable scan of a metadata table, every refinement returns a new scan."""

    table: Table
    table_type: MetadataTableType
    row_filter: BooleanExpression
    selected_fields: Tuple[str, ...]
    case_sensitive: bool
    snapshot_id: Optional[int]
    as_of_timestamp: Optional[int]
    limit: Optional[int]

    def __init__(
        self,
        table: Table,
        table_type: MetadataTableType,
        row_filter: Union[str, BooleanExpression] = ALWAYS_TRUE,
        selected_fields: Tuple[str, ...] = ("*",),
        case_sensitive: bool = True,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        if snapshot_id is not None and as_of_timestamp is not None:
            raise ValueError("Cannot use both snapshot_id and as_of_timestamp to select a snapshot")
        if (snapshot_id is not None or as_of_timestamp is not None) and not table_type.supports_time_travel:
            raise ValueError(f"Cannot select a snapshot for the {table_type.value} metadata table")
        if limit is not None and limit < 0:
            raise ValueError(f"Limit must be a positive number: {limit}")

        self.table = table
        self.table_type = table_type
        self.row_filter = _parse_row_filter(row_filter)
        self.selected_fields = selected_fields
        self.case_sensitive = case_sensitive
        self.snapshot_id = snapshot_id
        self.as_of_timestamp = as_of_timestamp
        self.limit = limit

    def update(self: S, **overrides: Any) -> S:
        """Create a copy of this scan with updated fields."""
        return type(self)(**{**self.__dict__, **overrides})

    def select(self: S, *field_names: str) -> S:
        if "*" in self.selected_fields:
            return self.update(selected_fields=field_names)
        return self.update(selected_fields=tuple(name for name in self.selected_fields if name in field_names))

    def filter(self: S, expr: Union[str, BooleanExpression]) -> S:
        return self.update(row_filter=And(self.row_filter, _parse_row_filter(expr)))

    def with_case_sensitive(self: S, case_sensitive: bool = True) -> S:
        return self.update(case_sensitive=case_sensitive)

    def use_snapshot(self: S, snapshot_id: int) -> S:
        return self.update(snapshot_id=snapshot_id, as_of_timestamp=None)

    def as_of(self: S, timestamp_ms: int) -> S:
        return self.update(snapshot_id=None, as_of_timestamp=timestamp_ms)

    def with_limit(self: S, limit: Optional[int]) -> S:
        return self.update(limit=limit)

    def schema(self) -> Schema:
        return metadata_table_schema(self.table.metadata, self.table_type)

    def projection(self) -> Schema:
        """Return the schema of the rows this scan produces.

        Raises:
            ResolveError: When a selected column does not exist.
            UnsupportedProjectionError: When a field inside a list element struct is selected.
        """
        schema = self.schema()
        if "*" in self.selected_fields:
            return schema
        return schema.select(*self.selected_fields, case_sensitive=self.case_sensitive)

    def _read(self) -> pa.Table:
        view = getattr(self.table.inspect, self.table_type.value)
        if self.table_type.supports_time_travel:
            return view(
                snapshot_id=self.snapshot_id,
                as_of_timestamp=self.as_of_timestamp,
                row_filter=self.row_filter,
                case_sensitive=self.case_sensitive,
            )
        return view(row_filter=self.row_filter, case_sensitive=self.case_sensitive)

    def to_arrow(self) -> pa.Table:
        """Read the metadata table into a pyarrow Table, pruned to the projection."""
        projected_schema = self.projection()
        logger.debug(
            "Scanning %s with filter %s, selected %s", self.table_type.value, self.row_filter, self.selected_fields
        )

        result = self._read()
        if self.limit is not None:
            result = result.slice(0, self.limit)

        if "*" in self.selected_fields:
            return result

        # nested structs are pruned by rebuilding the rows against the projected schema
        return pa.Table.from_pylist(result.to_pylist(), schema=schema_to_pyarrow(projected_schema))

    def count(self) -> int:
        return self.to_arrow().num_rows


class MetadataTable:
    """A virtual table over the metadata of a table."""

    table: Table
    table_type: MetadataTableType

    def __init__(self, table: Table, table_type: Union[MetadataTableType, str]) -> None:
        self.table = table
        self.table_type = table_type if isinstance(table_type, MetadataTableType) else MetadataTableType.from_name(table_type)

    @property
    def name(self) -> str:
        return f"{'.'.join(self.table.name())}.{self.table_type.value}"

    def schema(self) -> Schema:
        return metadata_table_schema(self.table.metadata, self.table_type)

    def scan(
        self,
        row_filter: Union[str, BooleanExpression] = ALWAYS_TRUE,
        selected_fields: Tuple[str, ...] = ("*",),
        case_sensitive: bool = True,
        snapshot_id: Optional[int] = None,
        as_of_timestamp: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> MetadataTableScan:
        return MetadataTableScan(
            table=self.table,
            table_type=self.table_type,
            row_filter=row_filter,
            selected_fields=selected_fields,
            case_sensitive=case_sensitive,
            snapshot_id=snapshot_id,
            as_of_timestamp=as_of_timestamp,
            limit=limit,
        )

    def to_arrow(self) -> pa.Table:
        return self.scan().to_arrow()

    def __repr__(self) -> str:
        """Return the string representation of the MetadataTable class."""
        return f"MetadataTable({self.name})"
