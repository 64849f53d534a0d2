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
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pymetatables.io import FileIO, load_file_io
from pymetatables.partitioning import PartitionSpec
from pymetatables.schema import Schema
from pymetatables.table.inspect import InspectTable
from pymetatables.table.metadata import TableMetadata
from pymetatables.table.metadata_tables import MetadataTable, MetadataTableType
from pymetatables.table.resolver import resolve_schema, snapshot_as_of_timestamp
from pymetatables.table.snapshots import Snapshot, SnapshotLogEntry
from pymetatables.typedef import EMPTY_DICT, Identifier, Properties

if TYPE_CHECKING:
    from pymetatables.catalog import Catalog

logger = logging.getLogger(__name__)


class Table:
    _identifier: Identifier
    metadata: TableMetadata
    metadata_location: str
    io: FileIO
    catalog: Optional[Catalog]

    def __init__(
        self,
        identifier: Identifier,
        metadata: TableMetadata,
        metadata_location: str,
        io: FileIO,
        catalog: Optional[Catalog] = None,
    ) -> None:
        self._identifier = identifier
        self.metadata = metadata
        self.metadata_location = metadata_location
        self.io = io
        self.catalog = catalog

    @property
    def inspect(self) -> InspectTable:
        """Return the InspectTable object to browse the table metadata."""
        return InspectTable(self)

    def metadata_table(self, table_type: Union[MetadataTableType, str]) -> MetadataTable:
        """Return a metadata table of this table that can be scanned with a projection and a filter.

        Raises:
            NoSuchMetadataTableError: When the name is not one of the metadata tables.
        """
        return MetadataTable(self, table_type)

    def refresh(self) -> Table:
        """Refresh the current table metadata."""
        if self.catalog is None:
            raise ValueError(f"Cannot refresh table {self._identifier} without a catalog")
        fresh = self.catalog.load_table(self._identifier)
        self.metadata = fresh.metadata
        self.io = fresh.io
        self.metadata_location = fresh.metadata_location
        return self

    def name(self) -> Identifier:
        """Return the identifier of this table."""
        return self._identifier

    @property
    def format_version(self) -> int:
        return self.metadata.format_version

    def schema(self) -> Schema:
        """Return the schema for this table."""
        return self.metadata.schema()

    def schemas(self) -> Dict[int, Schema]:
        """Return a dict of the schema of this table."""
        return {schema.schema_id: schema for schema in self.metadata.schemas}

    def schema_as_of(self, snapshot_id: Optional[int] = None, as_of_timestamp: Optional[int] = None) -> Schema:
        """Return the schema that was current when the selected snapshot was committed.

        Args:
            snapshot_id: Select the snapshot by id.
            as_of_timestamp: Select the snapshot that was current at this time in milliseconds.

        Raises:
            ValueError: When both selectors are given.
            NoSuchSnapshotError: When no snapshot matches.
        """
        return resolve_schema(self.metadata, snapshot_id=snapshot_id, as_of_timestamp=as_of_timestamp)

    def spec(self) -> PartitionSpec:
        """Return the partition spec of this table."""
        return self.metadata.spec()

    def specs(self) -> Dict[int, PartitionSpec]:
        """Return a dict the partition specs this table."""
        return self.metadata.specs()

    @property
    def properties(self) -> Dict[str, str]:
        """Properties of the table."""
        return self.metadata.properties

    def location(self) -> str:
        """Return the table's base location."""
        return self.metadata.location

    def current_snapshot(self) -> Optional[Snapshot]:
        """Get the current snapshot for this table, or None if there is no current snapshot."""
        return self.metadata.current_snapshot()

    def snapshots(self) -> List[Snapshot]:
        return self.metadata.snapshots

    def snapshot_by_id(self, snapshot_id: int) -> Optional[Snapshot]:
        """Get the snapshot of this table with the given id, or None if there is no matching snapshot."""
        return self.metadata.snapshot_by_id(snapshot_id)

    def snapshot_as_of_timestamp(self, timestamp_ms: int) -> Snapshot:
        """Get the snapshot of the current lineage that was committed at or right before the given timestamp.

        Raises:
            NoSuchSnapshotError: When the timestamp is before the first snapshot.
        """
        return snapshot_as_of_timestamp(self.metadata, timestamp_ms)

    def history(self) -> List[SnapshotLogEntry]:
        """Get the snapshot history of this table."""
        return self.metadata.snapshot_log

    def __eq__(self, other: Any) -> bool:
        """Return the equality of two instances of the Table class."""
        return (
            self.name() == other.name() and self.metadata == other.metadata and self.metadata_location == other.metadata_location
            if isinstance(other, Table)
            else False
        )

    def __repr__(self) -> str:
        """Return the string representation of the Table class."""
        table_name = ".".join(self._identifier)
        schema_str = ",\n  ".join(str(column) for column in self.schema().columns)
        partition_str = f"partition by: [{', '.join(field.name for field in self.spec().fields)}]"
        snapshot_str = f"snapshot: {str(self.current_snapshot()) if self.current_snapshot() else 'null'}"
        return f"{table_name}(\n  {schema_str}\n),\n{partition_str},\n{snapshot_str}"


class StaticTable(Table):
    """Load a table directly from a metadata file (i.e., without using a catalog)."""

    def refresh(self) -> Table:
        """Read the metadata file again, it may have been replaced in place."""
        from pymetatables.serializers import FromInputFile

        self.metadata = FromInputFile.table_metadata(self.io.new_input(self.metadata_location))
        return self

    @classmethod
    def from_metadata(cls, metadata_location: str, properties: Properties = EMPTY_DICT) -> StaticTable:
        io = load_file_io(properties=properties, location=metadata_location)
        file = io.new_input(metadata_location)

        from pymetatables.serializers import FromInputFile

        metadata = FromInputFile.table_metadata(file)
        logger.debug("Loaded static table from %s", metadata_location)

        return cls(
            identifier=("static-table", metadata_location),
            metadata_location=metadata_location,
            metadata=metadata,
            io=load_file_io({**properties, **metadata.properties}, location=metadata_location),
        )
