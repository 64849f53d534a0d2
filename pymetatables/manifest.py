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
"""Manifest lists and manifests, stored as Avro container files.

Columns are resolved through the ``field-id`` attributes of the writer schema, so files
written with other column names (for example the v1 ``added_data_files_count``) read the same.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from types import TracebackType
from typing import (
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

import fastavro
from cachetools import LRUCache, cached
from cachetools.keys import hashkey

from pymetatables.conversions import to_bytes
from pymetatables.exceptions import ManifestCorruptionError
from pymetatables.io import FileIO, InputFile, OutputFile
from pymetatables.partitioning import PartitionSpec
from pymetatables.schema import Schema
from pymetatables.typedef import Record, TableVersion
from pymetatables.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    DoubleType,
    FixedType,
    FloatType,
    IntegerType,
    LongType,
    MetadataType,
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from pymetatables.utils.singleton import Singleton

logger = logging.getLogger(__name__)

AvroCompressionCodec = str


class DataFileContent(int, Enum):
    DATA = 0
    POSITION_DELETES = 1
    EQUALITY_DELETES = 2

    def __repr__(self) -> str:
        """Return the string representation of the DataFileContent class."""
        return f"DataFileContent.{self.name}"


class ManifestContent(int, Enum):
    DATA = 0
    DELETES = 1

    def __repr__(self) -> str:
        """Return the string representation of the ManifestContent class."""
        return f"ManifestContent.{self.name}"


class ManifestEntryStatus(int, Enum):
    EXISTING = 0
    ADDED = 1
    DELETED = 2

    def __repr__(self) -> str:
        """Return the string representation of the ManifestEntryStatus class."""
        return f"ManifestEntryStatus.{self.name}"


class FileFormat(str, Enum):
    AVRO = "AVRO"
    PARQUET = "PARQUET"
    ORC = "ORC"

    @classmethod
    def _missing_(cls, value: object) -> Union[None, str]:
        for member in cls:
            if isinstance(value, str) and member.value == value.upper():
                return member
        return None

    def __repr__(self) -> str:
        """Return the string representation of the FileFormat class."""
        return f"FileFormat.{self.name}"


T = TypeVar("T")


@dataclass(frozen=True)
class Present(Generic[T]):
    """A value that was written into the entry."""

    value: T


class Inherited(Singleton):
    """A value that was left out on write, and is taken from the enclosing manifest on read."""

    def __repr__(self) -> str:
        """Return the string representation of the Inherited class."""
        return "Inherited()"


Stored = Union[Present[T], Inherited]


def _stored(value: Optional[T]) -> Stored[T]:
    return Inherited() if value is None else Present(value)


@dataclass(frozen=True)
class PartitionFieldSummary:
    contains_null: bool
    contains_nan: Optional[bool] = None
    lower_bound: Optional[bytes] = None
    upper_bound: Optional[bytes] = None


@dataclass(frozen=True)
class DataFile:
    file_path: str
    file_format: FileFormat
    partition: Record
    record_count: int
    file_size_in_bytes: int
    content: DataFileContent = DataFileContent.DATA
    column_sizes: Optional[Dict[int, int]] = None
    value_counts: Optional[Dict[int, int]] = None
    null_value_counts: Optional[Dict[int, int]] = None
    nan_value_counts: Optional[Dict[int, int]] = None
    lower_bounds: Optional[Dict[int, bytes]] = None
    upper_bounds: Optional[Dict[int, bytes]] = None
    key_metadata: Optional[bytes] = None
    split_offsets: Optional[List[int]] = None
    equality_ids: Optional[List[int]] = None
    sort_order_id: Optional[int] = None
    spec_id: Optional[int] = None

    def __hash__(self) -> int:
        """Return the hash of the file path."""
        return hash(self.file_path)

    def __eq__(self, other: Any) -> bool:
        """Compare the datafile with another object.

        If it is a datafile, it will compare based on the file_path.
        """
        return self.file_path == other.file_path if isinstance(other, DataFile) else False


@dataclass(frozen=True)
class ManifestEntry:
    """An entry of a manifest.

    Entries read from a manifest always carry concrete snapshot ids and sequence numbers. They are
    optional here so that entries can be written for snapshot id inheritance.
    """

    status: ManifestEntryStatus
    data_file: DataFile
    snapshot_id: Optional[int] = None
    sequence_number: Optional[int] = None
    file_sequence_number: Optional[int] = None


@dataclass(frozen=True)
class StoredManifestEntry:
    """An entry as it is found in the file, before inheritance."""

    status: ManifestEntryStatus
    snapshot_id: Stored[int]
    sequence_number: Stored[int]
    file_sequence_number: Stored[int]
    data_file: DataFile

    def inherit(self, manifest: ManifestFile) -> ManifestEntry:
        """Resolve the inherited values against the manifest that holds the entry.

        Raises:
            ManifestCorruptionError: When neither the entry nor the manifest carries a snapshot id.
        """
        if isinstance(self.snapshot_id, Present):
            snapshot_id = self.snapshot_id.value
        elif manifest.added_snapshot_id is not None:
            snapshot_id = manifest.added_snapshot_id
        else:
            raise ManifestCorruptionError(
                f"Entry for {self.data_file.file_path} in {manifest.manifest_path} has no snapshot id, "
                "and the manifest has no added snapshot id to inherit"
            )

        sequence_number = self.sequence_number.value if isinstance(self.sequence_number, Present) else 0
        file_sequence_number = (
            self.file_sequence_number.value if isinstance(self.file_sequence_number, Present) else sequence_number
        )

        if manifest.content == ManifestContent.DATA:
            content = DataFileContent.DATA
        else:
            content = self.data_file.content
        spec_id = self.data_file.spec_id if self.data_file.spec_id is not None else manifest.partition_spec_id

        return ManifestEntry(
            status=self.status,
            snapshot_id=snapshot_id,
            sequence_number=sequence_number,
            file_sequence_number=file_sequence_number,
            data_file=replace(self.data_file, content=content, spec_id=spec_id),
        )


@dataclass(frozen=True)
class ManifestFile:
    manifest_path: str
    manifest_length: int
    partition_spec_id: int
    content: ManifestContent = ManifestContent.DATA
    sequence_number: int = 0
    min_sequence_number: int = 0
    added_snapshot_id: Optional[int] = None
    added_files_count: Optional[int] = None
    existing_files_count: Optional[int] = None
    deleted_files_count: Optional[int] = None
    added_rows_count: Optional[int] = None
    existing_rows_count: Optional[int] = None
    deleted_rows_count: Optional[int] = None
    partitions: Optional[List[PartitionFieldSummary]] = None
    key_metadata: Optional[bytes] = None

    def iter_manifest_entries(self, io: FileIO, discard_deleted: bool = True) -> Iterator[ManifestEntry]:
        """Lazily read the entries of the manifest, with the snapshot id and sequence numbers inherited."""
        for stored in read_manifest_entries(io.new_input(self.manifest_path)):
            if discard_deleted and stored.status == ManifestEntryStatus.DELETED:
                continue
            yield stored.inherit(self)


# Field ids of the manifest list
MANIFEST_PATH = 500
MANIFEST_LENGTH = 501
PARTITION_SPEC_ID = 502
ADDED_SNAPSHOT_ID = 503
ADDED_FILES_COUNT = 504
EXISTING_FILES_COUNT = 505
DELETED_FILES_COUNT = 506
PARTITIONS = 507
PARTITION_SUMMARY = 508
CONTAINS_NULL = 509
LOWER_BOUND = 510
UPPER_BOUND = 511
ADDED_ROWS_COUNT = 512
EXISTING_ROWS_COUNT = 513
DELETED_ROWS_COUNT = 514
SEQUENCE_NUMBER = 515
MIN_SEQUENCE_NUMBER = 516
CONTENT = 517
CONTAINS_NAN = 518
KEY_METADATA = 519

# Field ids of the manifest entries
STATUS = 0
SNAPSHOT_ID = 1
DATA_FILE = 2
ENTRY_SEQUENCE_NUMBER = 3
FILE_SEQUENCE_NUMBER = 4

# Field ids of the data file struct
FILE_PATH = 100
FILE_FORMAT = 101
PARTITION = 102
RECORD_COUNT = 103
FILE_SIZE_IN_BYTES = 104
COLUMN_SIZES = 108
VALUE_COUNTS = 109
NULL_VALUE_COUNTS = 110
LOWER_BOUNDS = 125
UPPER_BOUNDS = 128
FILE_KEY_METADATA = 131
SPLIT_OFFSETS = 132
FILE_CONTENT = 134
EQUALITY_IDS = 135
NAN_VALUE_COUNTS = 137
SORT_ORDER_ID = 140
SPEC_ID = 141


def _optional(avro_type: Any) -> List[Any]:
    return ["null", avro_type]


def _field(field_id: int, name: str, avro_type: Any, required: bool = True) -> Dict[str, Any]:
    if required:
        return {"name": name, "type": avro_type, "field-id": field_id}
    return {"name": name, "type": _optional(avro_type), "default": None, "field-id": field_id}


def _map(key_id: int, value_id: int, value_type: str) -> Dict[str, Any]:
    return {
        "type": "array",
        "logicalType": "map",
        "items": {
            "type": "record",
            "name": f"k{key_id}_v{value_id}",
            "fields": [
                {"name": "key", "type": "int", "field-id": key_id},
                {"name": "value", "type": value_type, "field-id": value_id},
            ],
        },
    }


def _list(element_id: int, element_type: str) -> Dict[str, Any]:
    return {"type": "array", "items": element_type, "element-id": element_id}


def _partition_avro_type(field_id: int, field_type: MetadataType) -> Any:
    if isinstance(field_type, BooleanType):
        return "boolean"
    if isinstance(field_type, (IntegerType, DateType)):
        return "int"
    if isinstance(field_type, (LongType, TimeType, TimestampType, TimestamptzType)):
        return "long"
    if isinstance(field_type, FloatType):
        return "float"
    if isinstance(field_type, DoubleType):
        return "double"
    if isinstance(field_type, StringType):
        return "string"
    if isinstance(field_type, BinaryType):
        return "bytes"
    if isinstance(field_type, UUIDType):
        return {"type": "fixed", "name": f"uuid_{field_id}", "size": 16}
    if isinstance(field_type, FixedType):
        return {"type": "fixed", "name": f"fixed_{field_id}", "size": field_type.length}
    if isinstance(field_type, DecimalType):
        return {"type": "bytes", "logicalType": "decimal", "precision": field_type.precision, "scale": field_type.scale}
    raise ValueError(f"Cannot store a partition value of type: {field_type}")


def manifest_entry_avro_schema(spec: PartitionSpec, schema: Schema) -> Dict[str, Any]:
    """Build the Avro schema of the entries of a manifest written for the given spec."""
    partition_type = spec.partition_type(schema)
    partition_record = {
        "type": "record",
        "name": f"r{PARTITION}",
        "fields": [
            _field(field.field_id, field.name, _partition_avro_type(field.field_id, field.field_type), required=False)
            for field in partition_type.fields
        ],
    }
    data_file = {
        "type": "record",
        "name": f"r{DATA_FILE}",
        "fields": [
            _field(FILE_CONTENT, "content", "int"),
            _field(FILE_PATH, "file_path", "string"),
            _field(FILE_FORMAT, "file_format", "string"),
            _field(PARTITION, "partition", partition_record),
            _field(RECORD_COUNT, "record_count", "long"),
            _field(FILE_SIZE_IN_BYTES, "file_size_in_bytes", "long"),
            _field(COLUMN_SIZES, "column_sizes", _map(117, 118, "long"), required=False),
            _field(VALUE_COUNTS, "value_counts", _map(119, 120, "long"), required=False),
            _field(NULL_VALUE_COUNTS, "null_value_counts", _map(121, 122, "long"), required=False),
            _field(NAN_VALUE_COUNTS, "nan_value_counts", _map(138, 139, "long"), required=False),
            _field(LOWER_BOUNDS, "lower_bounds", _map(126, 127, "bytes"), required=False),
            _field(UPPER_BOUNDS, "upper_bounds", _map(129, 130, "bytes"), required=False),
            _field(FILE_KEY_METADATA, "key_metadata", "bytes", required=False),
            _field(SPLIT_OFFSETS, "split_offsets", _list(133, "long"), required=False),
            _field(EQUALITY_IDS, "equality_ids", _list(136, "int"), required=False),
            _field(SORT_ORDER_ID, "sort_order_id", "int", required=False),
            _field(SPEC_ID, "spec_id", "int", required=False),
        ],
    }
    return {
        "type": "record",
        "name": "manifest_entry",
        "fields": [
            _field(STATUS, "status", "int"),
            _field(SNAPSHOT_ID, "snapshot_id", "long", required=False),
            _field(ENTRY_SEQUENCE_NUMBER, "sequence_number", "long", required=False),
            _field(FILE_SEQUENCE_NUMBER, "file_sequence_number", "long", required=False),
            _field(DATA_FILE, "data_file", data_file),
        ],
    }


MANIFEST_LIST_AVRO_SCHEMA: Dict[str, Any] = {
    "type": "record",
    "name": "manifest_file",
    "fields": [
        _field(MANIFEST_PATH, "manifest_path", "string"),
        _field(MANIFEST_LENGTH, "manifest_length", "long"),
        _field(PARTITION_SPEC_ID, "partition_spec_id", "int"),
        _field(CONTENT, "content", "int"),
        _field(SEQUENCE_NUMBER, "sequence_number", "long"),
        _field(MIN_SEQUENCE_NUMBER, "min_sequence_number", "long"),
        _field(ADDED_SNAPSHOT_ID, "added_snapshot_id", "long", required=False),
        _field(ADDED_FILES_COUNT, "added_files_count", "int", required=False),
        _field(EXISTING_FILES_COUNT, "existing_files_count", "int", required=False),
        _field(DELETED_FILES_COUNT, "deleted_files_count", "int", required=False),
        _field(ADDED_ROWS_COUNT, "added_rows_count", "long", required=False),
        _field(EXISTING_ROWS_COUNT, "existing_rows_count", "long", required=False),
        _field(DELETED_ROWS_COUNT, "deleted_rows_count", "long", required=False),
        _field(
            PARTITIONS,
            "partitions",
            {
                "type": "array",
                "element-id": PARTITION_SUMMARY,
                "items": {
                    "type": "record",
                    "name": f"r{PARTITION_SUMMARY}",
                    "fields": [
                        _field(CONTAINS_NULL, "contains_null", "boolean"),
                        _field(CONTAINS_NAN, "contains_nan", "boolean", required=False),
                        _field(LOWER_BOUND, "lower_bound", "bytes", required=False),
                        _field(UPPER_BOUND, "upper_bound", "bytes", required=False),
                    ],
                },
            },
            required=False,
        ),
        _field(KEY_METADATA, "key_metadata", "bytes", required=False),
    ],
}


class _FieldIds:
    """Maps the field ids of an Avro record schema onto the names the writer used."""

    def __init__(self, record_schema: Dict[str, Any]) -> None:
        self.names: Dict[int, str] = {}
        self.types: Dict[int, Any] = {}
        for avro_field in record_schema.get("fields", []):
            if (field_id := avro_field.get("field-id")) is not None:
                self.names[field_id] = avro_field["name"]
                self.types[field_id] = _unwrap_optional(avro_field["type"])

    def get(self, record: Dict[str, Any], field_id: int) -> Any:
        if (name := self.names.get(field_id)) is None:
            return None
        return record.get(name)

    def required(self, record: Dict[str, Any], field_id: int) -> Any:
        if (value := self.get(record, field_id)) is None:
            raise ManifestCorruptionError(f"Missing required field with id {field_id}")
        return value

    def nested(self, field_id: int) -> _FieldIds:
        avro_type = self.types.get(field_id)
        if isinstance(avro_type, dict) and avro_type.get("type") == "array":
            avro_type = avro_type["items"]
        return _FieldIds(avro_type if isinstance(avro_type, dict) else {})

    def field_ids(self) -> List[int]:
        return list(self.names)


def _unwrap_optional(avro_type: Any) -> Any:
    if isinstance(avro_type, list):
        non_null = [option for option in avro_type if option != "null"]
        return non_null[0] if len(non_null) == 1 else avro_type
    return avro_type


def _to_map(entries: Optional[List[Dict[str, Any]]]) -> Optional[Dict[int, Any]]:
    if entries is None:
        return None
    if isinstance(entries, dict):
        return dict(entries)
    return {entry["key"]: entry["value"] for entry in entries}


def _from_map(values: Optional[Dict[int, Any]]) -> Optional[List[Dict[str, Any]]]:
    if values is None:
        return None
    return [{"key": key, "value": value} for key, value in values.items()]


def _read_avro(input_file: InputFile) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any], Dict[str, str]]]:
    """Yield every record of an Avro container file with the writer schema and file metadata.

    Raises:
        ManifestCorruptionError: When the file cannot be decoded.
    """
    with input_file.open() as stream:
        try:
            reader = fastavro.reader(stream)
            writer_schema = json.loads(reader.metadata["avro.schema"])
            for record in reader:
                yield record, writer_schema, reader.metadata
        except (ValueError, EOFError, KeyError, TypeError, IndexError) as e:
            raise ManifestCorruptionError(f"Could not read Avro file {input_file.location}: {e}") from e


def read_manifest_list(input_file: InputFile) -> Iterator[ManifestFile]:
    """Read the manifests from the manifest list.

    Args:
        input_file: The input file where the stream can be read from.

    Returns:
        An iterator of ManifestFiles that are part of the list.
    """
    ids: Optional[_FieldIds] = None
    summary_ids: Optional[_FieldIds] = None
    for record, writer_schema, _ in _read_avro(input_file):
        if ids is None or summary_ids is None:
            ids = _FieldIds(writer_schema)
            summary_ids = ids.nested(PARTITIONS)

        partitions = ids.get(record, PARTITIONS)
        try:
            content = ManifestContent(ids.get(record, CONTENT) or 0)
        except ValueError as e:
            raise ManifestCorruptionError(f"Invalid manifest in {input_file.location}: {e}") from e

        yield ManifestFile(
            manifest_path=ids.required(record, MANIFEST_PATH),
            manifest_length=ids.required(record, MANIFEST_LENGTH),
            partition_spec_id=ids.required(record, PARTITION_SPEC_ID),
            content=content,
            sequence_number=ids.get(record, SEQUENCE_NUMBER) or 0,
            min_sequence_number=ids.get(record, MIN_SEQUENCE_NUMBER) or 0,
            added_snapshot_id=ids.get(record, ADDED_SNAPSHOT_ID),
            added_files_count=ids.get(record, ADDED_FILES_COUNT),
            existing_files_count=ids.get(record, EXISTING_FILES_COUNT),
            deleted_files_count=ids.get(record, DELETED_FILES_COUNT),
            added_rows_count=ids.get(record, ADDED_ROWS_COUNT),
            existing_rows_count=ids.get(record, EXISTING_ROWS_COUNT),
            deleted_rows_count=ids.get(record, DELETED_ROWS_COUNT),
            partitions=[
                PartitionFieldSummary(
                    contains_null=bool(summary_ids.get(summary, CONTAINS_NULL)),
                    contains_nan=summary_ids.get(summary, CONTAINS_NAN),
                    lower_bound=summary_ids.get(summary, LOWER_BOUND),
                    upper_bound=summary_ids.get(summary, UPPER_BOUND),
                )
                for summary in partitions
            ]
            if partitions is not None
            else None,
            key_metadata=ids.get(record, KEY_METADATA),
        )


def read_manifest_entries(input_file: InputFile) -> Iterator[StoredManifestEntry]:
    """Read the entries of a manifest as they are stored, without inheriting anything."""
    ids: Optional[_FieldIds] = None
    file_ids: Optional[_FieldIds] = None
    partition_ids: List[int] = []
    partition_names: Optional[_FieldIds] = None
    for record, writer_schema, _ in _read_avro(input_file):
        if ids is None or file_ids is None or partition_names is None:
            ids = _FieldIds(writer_schema)
            file_ids = ids.nested(DATA_FILE)
            partition_names = file_ids.nested(PARTITION)
            partition_ids = partition_names.field_ids()

        data_file_record = ids.required(record, DATA_FILE)
        partition_record = file_ids.get(data_file_record, PARTITION) or {}
        try:
            data_file = DataFile(
                content=DataFileContent(file_ids.get(data_file_record, FILE_CONTENT) or 0),
                file_path=file_ids.required(data_file_record, FILE_PATH),
                file_format=FileFormat(file_ids.required(data_file_record, FILE_FORMAT)),
                partition=Record(*[partition_names.get(partition_record, field_id) for field_id in partition_ids]),
                record_count=file_ids.required(data_file_record, RECORD_COUNT),
                file_size_in_bytes=file_ids.required(data_file_record, FILE_SIZE_IN_BYTES),
                column_sizes=_to_map(file_ids.get(data_file_record, COLUMN_SIZES)),
                value_counts=_to_map(file_ids.get(data_file_record, VALUE_COUNTS)),
                null_value_counts=_to_map(file_ids.get(data_file_record, NULL_VALUE_COUNTS)),
                nan_value_counts=_to_map(file_ids.get(data_file_record, NAN_VALUE_COUNTS)),
                lower_bounds=_to_map(file_ids.get(data_file_record, LOWER_BOUNDS)),
                upper_bounds=_to_map(file_ids.get(data_file_record, UPPER_BOUNDS)),
                key_metadata=file_ids.get(data_file_record, FILE_KEY_METADATA),
                split_offsets=file_ids.get(data_file_record, SPLIT_OFFSETS),
                equality_ids=file_ids.get(data_file_record, EQUALITY_IDS),
                sort_order_id=file_ids.get(data_file_record, SORT_ORDER_ID),
                spec_id=file_ids.get(data_file_record, SPEC_ID),
            )
            status = ManifestEntryStatus(ids.required(record, STATUS))
        except ValueError as e:
            raise ManifestCorruptionError(f"Invalid manifest entry in {input_file.location}: {e}") from e

        yield StoredManifestEntry(
            status=status,
            snapshot_id=_stored(ids.get(record, SNAPSHOT_ID)),
            sequence_number=_stored(ids.get(record, ENTRY_SEQUENCE_NUMBER)),
            file_sequence_number=_stored(ids.get(record, FILE_SEQUENCE_NUMBER)),
            data_file=data_file,
        )


@cached(cache=LRUCache(maxsize=128), key=lambda io, manifest_list: hashkey(manifest_list))
def _manifests(io: FileIO, manifest_list: str) -> Tuple[ManifestFile, ...]:
    """Return the manifests from the manifest list."""
    file = io.new_input(manifest_list)
    return tuple(read_manifest_list(file))


class PartitionFieldStats:
    _type: PrimitiveType
    _contains_null: bool
    _contains_nan: bool
    _min: Optional[Any]
    _max: Optional[Any]

    def __init__(self, partition_type: PrimitiveType) -> None:
        self._type = partition_type
        self._contains_null = False
        self._contains_nan = False
        self._min = None
        self._max = None

    def to_summary(self) -> PartitionFieldSummary:
        return PartitionFieldSummary(
            contains_null=self._contains_null,
            contains_nan=self._contains_nan,
            lower_bound=to_bytes(self._type, self._min) if self._min is not None else None,
            upper_bound=to_bytes(self._type, self._max) if self._max is not None else None,
        )

    def update(self, value: Any) -> None:
        if value is None:
            self._contains_null = True
        elif isinstance(value, float) and math.isnan(value):
            self._contains_nan = True
        else:
            if self._min is None:
                self._min = value
                self._max = value
            else:
                self._max = max(self._max, value)
                self._min = min(self._min, value)


def construct_partition_summaries(spec: PartitionSpec, schema: Schema, partitions: List[Record]) -> List[PartitionFieldSummary]:
    types = [field.field_type for field in spec.partition_type(schema).fields]
    field_stats = [PartitionFieldStats(field_type) for field_type in types]  # type: ignore
    for partition_keys in partitions:
        for i, field_type in enumerate(types):
            if not isinstance(field_type, PrimitiveType):
                raise ValueError(f"Expected a primitive type for the partition field, got {field_type}")
            partition_key = partition_keys[i]
            field_stats[i].update(partition_key)
    return [field.to_summary() for field in field_stats]


class ManifestWriter:
    """Collects the entries of one manifest and writes them as a single Avro file on close."""

    closed: bool
    _spec: PartitionSpec
    _schema: Schema
    _output_file: OutputFile
    _format_version: TableVersion
    _snapshot_id: Optional[int]
    _content: ManifestContent
    _avro_compression: AvroCompressionCodec

    def __init__(
        self,
        spec: PartitionSpec,
        schema: Schema,
        output_file: OutputFile,
        snapshot_id: Optional[int],
        format_version: TableVersion = 2,
        content: ManifestContent = ManifestContent.DATA,
        avro_compression: AvroCompressionCodec = "deflate",
    ) -> None:
        self.closed = False
        self._spec = spec
        self._schema = schema
        self._output_file = output_file
        self._snapshot_id = snapshot_id
        self._format_version = format_version
        self._content = content
        self._avro_compression = avro_compression

        self._records: List[Dict[str, Any]] = []
        self._added_files = 0
        self._added_rows = 0
        self._existing_files = 0
        self._existing_rows = 0
        self._deleted_files = 0
        self._deleted_rows = 0
        self._min_sequence_number: Optional[int] = None
        self._partitions: List[Record] = []

    def __enter__(self) -> ManifestWriter:
        """Open the writer."""
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Close the writer."""
        if exc_type is None and not self._records:
            self.closed = True
            raise ValueError("An empty manifest file has been written")

        self.close()

    def _metadata(self) -> Dict[str, str]:
        return {
            "schema": self._schema.model_dump_json(),
            "partition-spec": json.dumps([field.model_dump(by_alias=True) for field in self._spec.fields]),
            "partition-spec-id": str(self._spec.spec_id),
            "format-version": str(self._format_version),
            "content": "data" if self._content == ManifestContent.DATA else "deletes",
        }

    def close(self) -> None:
        if self.closed:
            return
        avro_schema = fastavro.parse_schema(manifest_entry_avro_schema(self._spec, self._schema))
        with self._output_file.create(overwrite=True) as output_stream:
            fastavro.writer(
                output_stream,
                avro_schema,
                self._records,
                codec=self._avro_compression,
                metadata=self._metadata(),
            )
        self.closed = True
        logger.debug("Wrote manifest %s with %d entries", self._output_file.location, len(self._records))

    def to_manifest_file(self) -> ManifestFile:
        """Return the manifest file."""
        # once the manifest file is generated, no more entries can be added
        self.close()
        min_sequence_number = self._min_sequence_number or 0
        return ManifestFile(
            manifest_path=self._output_file.location,
            manifest_length=len(self._output_file),
            partition_spec_id=self._spec.spec_id,
            content=self._content,
            sequence_number=min_sequence_number,
            min_sequence_number=min_sequence_number,
            added_snapshot_id=self._snapshot_id,
            added_files_count=self._added_files,
            existing_files_count=self._existing_files,
            deleted_files_count=self._deleted_files,
            added_rows_count=self._added_rows,
            existing_rows_count=self._existing_rows,
            deleted_rows_count=self._deleted_rows,
            partitions=construct_partition_summaries(self._spec, self._schema, self._partitions),
        )

    def add_entry(self, entry: ManifestEntry) -> ManifestWriter:
        if self.closed:
            raise RuntimeError("Cannot add entry to closed manifest writer")
        if entry.status == ManifestEntryStatus.ADDED:
            self._added_files += 1
            self._added_rows += entry.data_file.record_count
        elif entry.status == ManifestEntryStatus.EXISTING:
            self._existing_files += 1
            self._existing_rows += entry.data_file.record_count
        elif entry.status == ManifestEntryStatus.DELETED:
            self._deleted_files += 1
            self._deleted_rows += entry.data_file.record_count

        self._partitions.append(entry.data_file.partition)

        if (
            entry.status != ManifestEntryStatus.DELETED
            and entry.sequence_number is not None
            and (self._min_sequence_number is None or entry.sequence_number < self._min_sequence_number)
        ):
            self._min_sequence_number = entry.sequence_number

        self._records.append(self._to_record(entry))
        return self

    def _to_record(self, entry: ManifestEntry) -> Dict[str, Any]:
        data_file = entry.data_file
        partition_fields = self._spec.partition_type(self._schema).fields
        return {
            "status": int(entry.status),
            "snapshot_id": entry.snapshot_id,
            "sequence_number": entry.sequence_number,
            "file_sequence_number": entry.file_sequence_number,
            "data_file": {
                "content": int(data_file.content),
                "file_path": data_file.file_path,
                "file_format": data_file.file_format.value,
                "partition": {field.name: data_file.partition[pos] for pos, field in enumerate(partition_fields)},
                "record_count": data_file.record_count,
                "file_size_in_bytes": data_file.file_size_in_bytes,
                "column_sizes": _from_map(data_file.column_sizes),
                "value_counts": _from_map(data_file.value_counts),
                "null_value_counts": _from_map(data_file.null_value_counts),
                "nan_value_counts": _from_map(data_file.nan_value_counts),
                "lower_bounds": _from_map(data_file.lower_bounds),
                "upper_bounds": _from_map(data_file.upper_bounds),
                "key_metadata": data_file.key_metadata,
                "split_offsets": data_file.split_offsets,
                "equality_ids": data_file.equality_ids,
                "sort_order_id": data_file.sort_order_id,
                "spec_id": data_file.spec_id,
            },
        }

    def add(self, entry: ManifestEntry) -> ManifestWriter:
        return self.add_entry(replace(entry, status=ManifestEntryStatus.ADDED, snapshot_id=self._snapshot_id))

    def existing(self, entry: ManifestEntry) -> ManifestWriter:
        return self.add_entry(replace(entry, status=ManifestEntryStatus.EXISTING))

    def delete(self, entry: ManifestEntry) -> ManifestWriter:
        return self.add_entry(replace(entry, status=ManifestEntryStatus.DELETED, snapshot_id=self._snapshot_id))


def write_manifest(
    format_version: TableVersion,
    spec: PartitionSpec,
    schema: Schema,
    output_file: OutputFile,
    snapshot_id: Optional[int],
    content: ManifestContent = ManifestContent.DATA,
    avro_compression: AvroCompressionCodec = "deflate",
) -> ManifestWriter:
    if format_version not in (1, 2):
        raise ValueError(f"Cannot write manifest for table version: {format_version}")
    return ManifestWriter(
        spec=spec,
        schema=schema,
        output_file=output_file,
        snapshot_id=snapshot_id,
        format_version=format_version,
        content=content,
        avro_compression=avro_compression,
    )


class ManifestListWriter:
    _format_version: TableVersion
    _output_file: OutputFile
    _meta: Dict[str, str]
    _manifest_files: List[ManifestFile]
    _avro_compression: AvroCompressionCodec

    def __init__(
        self,
        format_version: TableVersion,
        output_file: OutputFile,
        snapshot_id: int,
        parent_snapshot_id: Optional[int],
        sequence_number: int,
        avro_compression: AvroCompressionCodec = "deflate",
    ):
        self._format_version = format_version
        self._output_file = output_file
        self._avro_compression = avro_compression
        self._manifest_files = []
        self._meta = {
            "snapshot-id": str(snapshot_id),
            "parent-snapshot-id": str(parent_snapshot_id) if parent_snapshot_id is not None else "null",
            "sequence-number": str(sequence_number),
            "format-version": str(format_version),
        }

    def __enter__(self) -> ManifestListWriter:
        """Open the writer for writing."""
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Write the collected manifests and close the writer."""
        if exc_type is not None:
            return
        with self._output_file.create(overwrite=True) as output_stream:
            fastavro.writer(
                output_stream,
                fastavro.parse_schema(MANIFEST_LIST_AVRO_SCHEMA),
                [_manifest_to_record(manifest) for manifest in self._manifest_files],
                codec=self._avro_compression,
                metadata=self._meta,
            )
        logger.debug("Wrote manifest list %s with %d manifests", self._output_file.location, len(self._manifest_files))

    def add_manifests(self, manifest_files: List[ManifestFile]) -> ManifestListWriter:
        self._manifest_files.extend(manifest_files)
        return self


def _manifest_to_record(manifest: ManifestFile) -> Dict[str, Any]:
    return {
        "manifest_path": manifest.manifest_path,
        "manifest_length": manifest.manifest_length,
        "partition_spec_id": manifest.partition_spec_id,
        "content": int(manifest.content),
        "sequence_number": manifest.sequence_number,
        "min_sequence_number": manifest.min_sequence_number,
        "added_snapshot_id": manifest.added_snapshot_id,
        "added_files_count": manifest.added_files_count,
        "existing_files_count": manifest.existing_files_count,
        "deleted_files_count": manifest.deleted_files_count,
        "added_rows_count": manifest.added_rows_count,
        "existing_rows_count": manifest.existing_rows_count,
        "deleted_rows_count": manifest.deleted_rows_count,
        "partitions": [
            {
                "contains_null": summary.contains_null,
                "contains_nan": summary.contains_nan,
                "lower_bound": summary.lower_bound,
                "upper_bound": summary.upper_bound,
            }
            for summary in manifest.partitions
        ]
        if manifest.partitions is not None
        else None,
        "key_metadata": manifest.key_metadata,
    }


def write_manifest_list(
    format_version: TableVersion,
    output_file: OutputFile,
    snapshot_id: int,
    parent_snapshot_id: Optional[int],
    sequence_number: Optional[int],
    avro_compression: AvroCompressionCodec = "deflate",
) -> ManifestListWriter:
    if format_version not in (1, 2):
        raise ValueError(f"Cannot write manifest list for table version: {format_version}")
    return ManifestListWriter(
        format_version=format_version,
        output_file=output_file,
        snapshot_id=snapshot_id,
        parent_snapshot_id=parent_snapshot_id,
        sequence_number=sequence_number or 0,
        avro_compression=avro_compression,
    )
