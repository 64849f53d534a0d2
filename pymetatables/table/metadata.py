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

import datetime
import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from pymetatables.exceptions import ValidationError
from pymetatables.partitioning import PARTITION_FIELD_ID_START, PartitionSpec, partition_struct
from pymetatables.schema import Schema
from pymetatables.table.snapshots import MetadataLogEntry, Snapshot, SnapshotLogEntry
from pymetatables.typedef import EMPTY_DICT, MetadataBaseModel, Properties
from pymetatables.types import StructType
from pymetatables.utils.datetime import datetime_to_millis
from pymetatables.utils.snapshot import ancestors_of

logger = logging.getLogger(__name__)

CURRENT_SNAPSHOT_ID = "current-snapshot-id"
INITIAL_SEQUENCE_NUMBER = 0
INITIAL_SPEC_ID = 0
DEFAULT_SCHEMA_ID = 0
SUPPORTED_TABLE_FORMAT_VERSION = 2

# Writers on different hosts may disagree slightly on the time
ALLOWED_CLOCK_SKEW_MS = 60_000


def cleanup_snapshot_id(data: Dict[str, Any]) -> Dict[str, Any]:
    """Run before validation, older writers use -1 for a table without a current snapshot."""
    if CURRENT_SNAPSHOT_ID in data and data[CURRENT_SNAPSHOT_ID] == -1:
        # We treat -1 and None the same, by cleaning this up
        # in a pre-validator, we can simplify the logic later on
        data[CURRENT_SNAPSHOT_ID] = None
    return data


def check_schemas(table_metadata: TableMetadata) -> TableMetadata:
    """Check if the current-schema-id is actually present in schemas."""
    current_schema_id = table_metadata.current_schema_id

    for schema in table_metadata.schemas:
        if schema.schema_id == current_schema_id:
            return table_metadata

    raise ValidationError(f"current-schema-id {current_schema_id} can't be found in the schemas")


def check_partition_specs(table_metadata: TableMetadata) -> TableMetadata:
    """Check if the default-spec-id is present in partition-specs."""
    default_spec_id = table_metadata.default_spec_id

    partition_specs: List[PartitionSpec] = table_metadata.partition_specs
    for spec in partition_specs:
        if spec.spec_id == default_spec_id:
            return table_metadata

    raise ValidationError(f"default-spec-id {default_spec_id} can't be found")


def check_current_snapshot(table_metadata: TableMetadata) -> TableMetadata:
    """Check if the current-snapshot-id refers to a snapshot of the table."""
    if (current_snapshot_id := table_metadata.current_snapshot_id) is not None:
        if table_metadata.snapshot_by_id(current_snapshot_id) is None:
            raise ValidationError(f"current-snapshot-id {current_snapshot_id} can't be found in the snapshots")
    return table_metadata


def check_snapshot_parents(table_metadata: TableMetadata) -> TableMetadata:
    """Walk the parent chain of every snapshot, a parent cycle raises."""
    for snapshot in table_metadata.snapshots:
        for _ in ancestors_of(snapshot.snapshot_id, table_metadata.snapshot_by_id):
            pass
    return table_metadata


def check_snapshot_log(table_metadata: TableMetadata) -> TableMetadata:
    """Check that the snapshot log only references expired snapshots at its start, and that it is ordered by time."""
    seen_known = False
    previous: Optional[SnapshotLogEntry] = None
    for entry in table_metadata.snapshot_log:
        if table_metadata.snapshot_by_id(entry.snapshot_id) is not None:
            seen_known = True
        elif seen_known:
            raise ValidationError(f"snapshot-log references unknown snapshot {entry.snapshot_id} after known snapshots")

        if previous is not None and entry.timestamp_ms < previous.timestamp_ms - ALLOWED_CLOCK_SKEW_MS:
            raise ValidationError(
                f"snapshot-log is not ordered by time: {entry.snapshot_id} at {entry.timestamp_ms} "
                f"follows {previous.snapshot_id} at {previous.timestamp_ms}"
            )
        previous = entry
    return table_metadata


class TableMetadata(MetadataBaseModel):
    """Metadata of a table, as stored in the metadata JSON file the catalog points at.

    Every version of the table is described by one of these files. The snapshots and logs in
    it are append only, with the exception of expired snapshots that are dropped from the start.
    """

    format_version: Literal[1, 2] = Field(alias="format-version", default=SUPPORTED_TABLE_FORMAT_VERSION)
    """An integer version number for the format."""

    table_uuid: uuid.UUID = Field(alias="table-uuid", default_factory=uuid.uuid4)
    """A UUID that identifies the table."""

    location: str = Field()
    """The table’s base location."""

    last_sequence_number: int = Field(alias="last-sequence-number", default=INITIAL_SEQUENCE_NUMBER)
    """The table’s highest assigned sequence number."""

    last_updated_ms: int = Field(
        alias="last-updated-ms", default_factory=lambda: datetime_to_millis(datetime.datetime.now().astimezone())
    )
    """Timestamp in milliseconds from the unix epoch when the table
    was last updated."""

    last_column_id: int = Field(alias="last-column-id")
    """An integer; the highest assigned column ID for the table."""

    schemas: List[Schema] = Field(default_factory=list)
    """A list of schemas, stored as objects with schema-id."""

    current_schema_id: int = Field(alias="current-schema-id", default=DEFAULT_SCHEMA_ID)
    """ID of the table’s current schema."""

    partition_specs: List[PartitionSpec] = Field(alias="partition-specs", default_factory=list)
    """A list of partition specs, stored as full partition spec objects."""

    default_spec_id: int = Field(alias="default-spec-id", default=INITIAL_SPEC_ID)
    """ID of the “current” spec that writers should use by default."""

    last_partition_id: Optional[int] = Field(alias="last-partition-id", default=None)
    """An integer; the highest assigned partition field ID across all
    partition specs for the table."""

    properties: Dict[str, str] = Field(default_factory=dict)
    """A string to string map of table properties."""

    current_snapshot_id: Optional[int] = Field(alias="current-snapshot-id", default=None)
    """ID of the current table snapshot."""

    snapshots: List[Snapshot] = Field(default_factory=list)
    """A list of valid snapshots. Valid snapshots are snapshots for which
    all data files exist in the file system."""

    snapshot_log: List[SnapshotLogEntry] = Field(alias="snapshot-log", default_factory=list)
    """A list (optional) of timestamp and snapshot ID pairs that encodes
    changes to the current snapshot for the table. Each time the
    current-snapshot-id is changed, a new entry should be added with the
    last-updated-ms and the new current-snapshot-id."""

    metadata_log: List[MetadataLogEntry] = Field(alias="metadata-log", default_factory=list)
    """A list (optional) of timestamp and metadata file location pairs
    that encodes changes to the previous metadata files for the table."""

    @model_validator(mode="before")
    @classmethod
    def cleanup_snapshot_id(cls, data: Any) -> Any:
        return cleanup_snapshot_id(data) if isinstance(data, dict) else data

    @field_validator("properties", mode="before")
    @classmethod
    def transform_properties_dict_value_to_str(cls, properties: Properties) -> Dict[str, str]:
        return {k: str(v) for k, v in properties.items()}

    @model_validator(mode="after")
    def check_metadata(self) -> TableMetadata:
        check_schemas(self)
        check_partition_specs(self)
        check_current_snapshot(self)
        check_snapshot_parents(self)
        return check_snapshot_log(self)

    def schema(self) -> Schema:
        """Return the current schema."""
        return next(schema for schema in self.schemas if schema.schema_id == self.current_schema_id)

    def schema_by_id(self, schema_id: int) -> Optional[Schema]:
        """Get the schema by schema_id."""
        return next((schema for schema in self.schemas if schema.schema_id == schema_id), None)

    def spec(self) -> PartitionSpec:
        """Return the default partition spec."""
        return next(spec for spec in self.partition_specs if spec.spec_id == self.default_spec_id)

    def specs(self) -> Dict[int, PartitionSpec]:
        """Return a dict the partition specs this table."""
        return {spec.spec_id: spec for spec in self.partition_specs}

    def specs_struct(self) -> StructType:
        """Produce a struct of all the combined PartitionSpecs.

        The partition fields should be optional: Partition fields may be added later,
        in which case not all files would have the result field, and it may be null.

        Returns:
            A StructType that represents all the combined PartitionSpecs of the table
        """
        # The current schema goes first, dropped source columns are found in older schemas
        schemas = [self.schema()] + [schema for schema in reversed(self.schemas) if schema.schema_id != self.current_schema_id]
        return partition_struct(list(self.specs().values()), schemas)

    def snapshot_by_id(self, snapshot_id: int) -> Optional[Snapshot]:
        """Get the snapshot by snapshot_id."""
        return next((snapshot for snapshot in self.snapshots if snapshot.snapshot_id == snapshot_id), None)

    def current_snapshot(self) -> Optional[Snapshot]:
        """Get the current snapshot for this table, or None if there is no current snapshot."""
        if self.current_snapshot_id is not None:
            return self.snapshot_by_id(self.current_snapshot_id)
        return None

    def _update(self, **changes: Any) -> TableMetadata:
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return TableMetadata(**data)

    def add_snapshot(self, snapshot: Snapshot, set_current: bool = True) -> TableMetadata:
        """Return new metadata with the snapshot registered, and made current unless told otherwise."""
        if self.snapshot_by_id(snapshot.snapshot_id) is not None:
            raise ValueError(f"Snapshot with id {snapshot.snapshot_id} already exists")

        metadata = self._update(
            snapshots=self.snapshots + [snapshot],
            last_sequence_number=max(self.last_sequence_number, snapshot.sequence_number or INITIAL_SEQUENCE_NUMBER),
            last_updated_ms=max(self.last_updated_ms, snapshot.timestamp_ms),
        )
        if set_current:
            return metadata.set_current_snapshot(snapshot.snapshot_id, snapshot.timestamp_ms)
        return metadata

    def set_current_snapshot(self, snapshot_id: int, timestamp_ms: Optional[int] = None) -> TableMetadata:
        """Move the current snapshot pointer, which appends an entry to the snapshot log.

        Pointing back at an older snapshot is how a rollback is recorded.
        """
        if self.snapshot_by_id(snapshot_id) is None:
            raise ValueError(f"Cannot set current snapshot to unknown snapshot id: {snapshot_id}")

        if timestamp_ms is None:
            timestamp_ms = datetime_to_millis(datetime.datetime.now().astimezone())

        logger.debug("Setting current snapshot to %s", snapshot_id)
        return self._update(
            current_snapshot_id=snapshot_id,
            last_updated_ms=max(self.last_updated_ms, timestamp_ms),
            snapshot_log=self.snapshot_log + [SnapshotLogEntry(snapshot_id=snapshot_id, timestamp_ms=timestamp_ms)],
        )

    def add_schema(self, schema: Schema, set_current: bool = True) -> TableMetadata:
        """Return new metadata with the schema registered under a fresh schema id."""
        schema_id = max((existing.schema_id for existing in self.schemas), default=DEFAULT_SCHEMA_ID - 1) + 1
        new_schema = schema.model_copy(update={"schema_id": schema_id})
        return self._update(
            schemas=self.schemas + [new_schema],
            current_schema_id=schema_id if set_current else self.current_schema_id,
            last_column_id=max(self.last_column_id, schema.highest_field_id),
        )

    def add_partition_spec(self, spec: PartitionSpec, set_default: bool = True) -> TableMetadata:
        """Return new metadata with the spec registered under a fresh spec id."""
        spec_id = max((existing.spec_id for existing in self.partition_specs), default=INITIAL_SPEC_ID - 1) + 1
        new_spec = spec.model_copy(update={"spec_id": spec_id})
        last_partition_id = max(
            [self.last_partition_id or PARTITION_FIELD_ID_START - 1] + [field.field_id for field in spec.fields]
        )
        return self._update(
            partition_specs=self.partition_specs + [new_spec],
            default_spec_id=spec_id if set_default else self.default_spec_id,
            last_partition_id=last_partition_id,
        )

    def add_metadata_log_entry(self, metadata_file: str, timestamp_ms: int) -> TableMetadata:
        """Record the metadata file that this version replaces."""
        log_entry = MetadataLogEntry(metadata_file=metadata_file, timestamp_ms=timestamp_ms)
        return self._update(metadata_log=self.metadata_log + [log_entry])


def new_table_metadata(
    schema: Schema,
    partition_spec: PartitionSpec,
    location: str,
    properties: Properties = EMPTY_DICT,
    table_uuid: Optional[uuid.UUID] = None,
) -> TableMetadata:
    """Create the metadata of a table without snapshots."""
    fresh_schema = schema.model_copy(update={"schema_id": DEFAULT_SCHEMA_ID})
    fresh_spec = partition_spec.model_copy(update={"spec_id": INITIAL_SPEC_ID})
    return TableMetadata(
        location=location,
        schemas=[fresh_schema],
        last_column_id=fresh_schema.highest_field_id,
        current_schema_id=fresh_schema.schema_id,
        partition_specs=[fresh_spec],
        default_spec_id=fresh_spec.spec_id,
        last_partition_id=max((field.field_id for field in fresh_spec.fields), default=PARTITION_FIELD_ID_START - 1),
        properties=dict(properties),
        table_uuid=table_uuid or uuid.uuid4(),
    )


class TableMetadataUtil:
    """Helper class for parsing TableMetadata."""

    @staticmethod
    def parse_raw(data: str) -> TableMetadata:
        return TableMetadata.model_validate_json(data)

    @staticmethod
    def parse_obj(data: Dict[str, Any]) -> TableMetadata:
        if "format-version" not in data:
            raise ValidationError(f"Missing format-version in TableMetadata: {data}")
        format_version = data["format-version"]
        if format_version not in (1, 2):
            raise ValidationError(f"Unknown format version: {format_version}")
        return TableMetadata.model_validate(data)
