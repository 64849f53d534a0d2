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
"""Catalogs keep the pointer from a table name to its current metadata file."""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Union, cast

from pymetatables.exceptions import NoSuchMetadataTableError, NoSuchSnapshotError, NoSuchTableError
from pymetatables.io import FileIO, load_file_io
from pymetatables.partitioning import UNPARTITIONED_PARTITION_SPEC, PartitionSpec
from pymetatables.schema import Schema
from pymetatables.serializers import ToOutputFile
from pymetatables.table.metadata import TableMetadata
from pymetatables.table.metadata_tables import MetadataTable, MetadataTableType
from pymetatables.table.snapshots import Snapshot
from pymetatables.typedef import EMPTY_DICT, Identifier, Properties, RecursiveDict
from pymetatables.utils.config import Config, merge_config

if TYPE_CHECKING:
    from pymetatables.table import Table

logger = logging.getLogger(__name__)

_ENV_CONFIG = Config()

TYPE = "type"

METADATA_FILE_NAME_REGEX = re.compile(r"^(\d+)-(.*)\.metadata\.json$", re.X)


class CatalogType(Enum):
    IN_MEMORY = "in-memory"


def load_in_memory(name: str, conf: Properties) -> Catalog:
    from pymetatables.catalog.memory import InMemoryCatalog

    return InMemoryCatalog(name, **conf)


AVAILABLE_CATALOGS: Dict[CatalogType, Callable[[str, Properties], Catalog]] = {
    CatalogType.IN_MEMORY: load_in_memory,
}


def infer_catalog_type(name: str, catalog_properties: RecursiveDict) -> Optional[CatalogType]:
    """Try to infer the type based on the dict.

    Args:
        name: Name of the catalog.
        catalog_properties: Catalog properties.

    Returns:
        The inferred type based on the provided properties.

    Raises:
        ValueError: Raises a ValueError in case the type is unknown.
    """
    if catalog_type := catalog_properties.get(TYPE):
        if not isinstance(catalog_type, str):
            raise ValueError(f"Expects the catalog type to be a string: {catalog_type}")
        try:
            return CatalogType(catalog_type.lower())
        except ValueError as e:
            raise ValueError(f"Unknown catalog type {catalog_type!r} for catalog {name}") from e
    return CatalogType.IN_MEMORY


def load_catalog(name: Optional[str] = None, **properties: Optional[str]) -> Catalog:
    """Load the catalog based on the properties.

    Will look up the properties from the config, based on the name.

    Args:
        name: The name of the catalog.
        properties: The properties that are used next to the configuration.

    Returns:
        An initialized Catalog.

    Raises:
        ValueError: Raises a ValueError in case properties are missing or malformed,
            or if it could not determine the catalog based on the properties.
    """
    if name is None:
        name = _ENV_CONFIG.get_default_catalog_name()

    env = _ENV_CONFIG.get_catalog_config(name)
    conf: RecursiveDict = merge_config(env or {}, cast(RecursiveDict, properties))

    catalog_type: Optional[CatalogType]
    provided_catalog_type = conf.get(TYPE)

    catalog_type = None
    if provided_catalog_type and isinstance(provided_catalog_type, str):
        catalog_type = CatalogType(provided_catalog_type.lower())
    elif not provided_catalog_type:
        catalog_type = infer_catalog_type(name, conf)

    if catalog_type:
        logger.debug("Loading %s catalog %s", catalog_type.value, name)
        return AVAILABLE_CATALOGS[catalog_type](name, cast(Dict[str, str], conf))

    raise ValueError(f"Could not initialize catalog with the following properties: {properties}")


class Catalog(ABC):
    """Base Catalog for table operations like - create, drop, load, list and others.

    The catalog table APIs accept a table identifier, which is fully classified table name. The identifier can be a string or
    tuple of strings. If the identifier is a string, it is split into a tuple on '.'. If it is a tuple, it is used as-is.

    Next to the table itself, a catalog answers the questions a reader asks about the history of a
    table: the current snapshot, a snapshot by id and all the snapshots.

    Attributes:
        name (str): Name of the catalog.
        properties (Properties): Catalog properties.
    """

    name: str
    properties: Properties

    def __init__(self, name: str, **properties: str):
        self.name = name
        self.properties = properties

    def _load_file_io(self, properties: Properties = EMPTY_DICT, location: Optional[str] = None) -> FileIO:
        return load_file_io({**self.properties, **properties}, location)

    @abstractmethod
    def create_table(
        self,
        identifier: Union[str, Identifier],
        schema: Schema,
        location: Optional[str] = None,
        partition_spec: PartitionSpec = UNPARTITIONED_PARTITION_SPEC,
        properties: Properties = EMPTY_DICT,
    ) -> Table:
        """Create a table.

        Raises:
            TableAlreadyExistsError: If a table with the name already exists.
        """

    @abstractmethod
    def register_table(self, identifier: Union[str, Identifier], metadata_location: str) -> Table:
        """Register a new table using existing metadata.

        Raises:
            TableAlreadyExistsError: If the table already exists.
        """

    @abstractmethod
    def load_table(self, identifier: Union[str, Identifier]) -> Table:
        """Load the table's metadata and returns the table instance.

        Raises:
            NoSuchTableError: If a table with the name does not exist.
        """

    @abstractmethod
    def commit_metadata(self, table: Table, metadata: TableMetadata) -> Table:
        """Persist a new version of the table metadata and move the pointer of the table to it.

        Raises:
            NoSuchTableError: If a table with the name does not exist.
        """

    @abstractmethod
    def drop_table(self, identifier: Union[str, Identifier]) -> None:
        """Drop a table.

        Raises:
            NoSuchTableError: If a table with the name does not exist.
        """

    @abstractmethod
    def list_tables(self, namespace: Optional[Union[str, Identifier]] = None) -> List[Identifier]:
        """List tables under the given namespace in the catalog, all of them when no namespace is given."""

    @abstractmethod
    def list_namespaces(self) -> List[Identifier]:
        """List the namespaces that hold tables."""

    def table_exists(self, identifier: Union[str, Identifier]) -> bool:
        try:
            self.load_table(identifier)
            return True
        except NoSuchTableError:
            return False

    def load_metadata_table(self, identifier: Union[str, Identifier]) -> MetadataTable:
        """Load a metadata table, addressed as the name of the table followed by the name of the view.

        Example:
            >>> catalog.load_metadata_table("db.events.entries")

        Raises:
            NoSuchMetadataTableError: When the last part of the name is not a metadata table.
            NoSuchTableError: When the table does not exist.
        """
        identifier_tuple = self.identifier_to_tuple_without_catalog(identifier)
        if len(identifier_tuple) < 2:
            raise NoSuchMetadataTableError(f"Expected <table>.<metadata table>, got: {'.'.join(identifier_tuple)}")

        table_type = MetadataTableType.from_name(identifier_tuple[-1])
        return self.load_table(identifier_tuple[:-1]).metadata_table(table_type)

    def current_snapshot_id(self, identifier: Union[str, Identifier]) -> Optional[int]:
        """Return the id of the current snapshot of the table, None for a table without snapshots."""
        return self.load_table(identifier).metadata.current_snapshot_id

    def snapshot_by_id(self, identifier: Union[str, Identifier], snapshot_id: int) -> Snapshot:
        """Return a snapshot of the table.

        Raises:
            NoSuchSnapshotError: When the table has no snapshot with that id.
        """
        if snapshot := self.load_table(identifier).snapshot_by_id(snapshot_id):
            return snapshot
        raise NoSuchSnapshotError(f"Cannot find snapshot with ID {snapshot_id}")

    def all_snapshots(self, identifier: Union[str, Identifier]) -> List[Snapshot]:
        """Return every snapshot that is still part of the table metadata."""
        return list(self.load_table(identifier).snapshots())

    def identifier_to_tuple_without_catalog(self, identifier: Union[str, Identifier]) -> Identifier:
        """Convert an identifier to a tuple and drop this catalog's name from the first element.

        Args:
            identifier (str | Identifier): Table identifier.

        Returns:
            Identifier: a tuple of strings with this catalog's name removed
        """
        identifier_tuple = Catalog.identifier_to_tuple(identifier)
        if len(identifier_tuple) >= 3 and identifier_tuple[0] == self.name:
            identifier_tuple = identifier_tuple[1:]
        return identifier_tuple

    @staticmethod
    def identifier_to_tuple(identifier: Union[str, Identifier]) -> Identifier:
        """Parse an identifier to a tuple.

        If the identifier is a string, it is split into a tuple on '.'. If it is a tuple, it is used as-is.

        Args:
            identifier (str | Identifier): an identifier, either a string or tuple of strings.

        Returns:
            Identifier: a tuple of strings.
        """
        return identifier if isinstance(identifier, tuple) else tuple(str.split(identifier, "."))

    @staticmethod
    def table_name_from(identifier: Union[str, Identifier]) -> str:
        """Extract table name from a table identifier.

        Args:
            identifier (str | Identifier: a table identifier.

        Returns:
            str: Table name.
        """
        return Catalog.identifier_to_tuple(identifier)[-1]

    @staticmethod
    def namespace_from(identifier: Union[str, Identifier]) -> Identifier:
        """Extract table namespace from a table identifier.

        Args:
            identifier (Union[str, Identifier]): a table identifier.

        Returns:
            Identifier: Namespace identifier.
        """
        return Catalog.identifier_to_tuple(identifier)[:-1]

    @staticmethod
    def _write_metadata(metadata: TableMetadata, io: FileIO, metadata_path: str) -> None:
        ToOutputFile.table_metadata(metadata, io.new_output(metadata_path))

    @staticmethod
    def _get_metadata_location(location: str, new_version: int = 0) -> str:
        if new_version < 0:
            raise ValueError(f"Table metadata version: `{new_version}` must be a non-negative integer")
        version_str = f"{new_version:05d}"
        return f"{location}/metadata/{version_str}-{uuid.uuid4()}.metadata.json"

    @staticmethod
    def _parse_metadata_version(metadata_location: str) -> int:
        """Parse the version from the metadata location.

        The version is the first part of the file name, before the first dash.
        For example, the version of the metadata file
        `s3://bucket/db/tb/metadata/00001-6c97e413-d51b-4538-ac70-12fe2a85cb83.metadata.json`
        is 1.
        If the path does not comply with the pattern, the version is defaulted to be -1, ensuring
        that the next metadata file is treated as having version 0.

        Args:
            metadata_location (str): The location of the metadata file.

        Returns:
            int: The version of the metadata file. -1 if the file name does not have valid version string
        """
        file_name = metadata_location.split("/")[-1]
        if file_name_match := METADATA_FILE_NAME_REGEX.fullmatch(file_name):
            try:
                uuid.UUID(file_name_match.group(2))
            except ValueError:
                return -1
            return int(file_name_match.group(1))
        else:
            return -1

    def __repr__(self) -> str:
        """Return the string representation of the Catalog class."""
        return f"{self.name} ({self.__class__})"
