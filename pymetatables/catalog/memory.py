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
import uuid
from typing import Dict, List, Optional, Union

from pymetatables.catalog import Catalog
from pymetatables.exceptions import NoSuchTableError, TableAlreadyExistsError
from pymetatables.io import WAREHOUSE
from pymetatables.partitioning import UNPARTITIONED_PARTITION_SPEC, PartitionSpec
from pymetatables.schema import Schema
from pymetatables.serializers import FromInputFile
from pymetatables.table import Table
from pymetatables.table.metadata import TableMetadata, new_table_metadata
from pymetatables.typedef import EMPTY_DICT, Identifier, Properties

logger = logging.getLogger(__name__)

DEFAULT_WAREHOUSE_LOCATION = "file:///tmp/warehouse"


class InMemoryCatalog(Catalog):
    """An in-memory catalog implementation.

    The pointer from a table name to its metadata file lives in memory. Every version of the
    metadata is written as a JSON file next to the table, so it can also be opened without the
    catalog.
    """

    __tables: Dict[Identifier, Table]

    def __init__(self, name: str, **properties: str) -> None:
        super().__init__(name, **properties)
        self.__tables = {}
        self._warehouse_location = properties.get(WAREHOUSE, None) or DEFAULT_WAREHOUSE_LOCATION

    def create_table(
        self,
        identifier: Union[str, Identifier],
        schema: Schema,
        location: Optional[str] = None,
        partition_spec: PartitionSpec = UNPARTITIONED_PARTITION_SPEC,
        properties: Properties = EMPTY_DICT,
        table_uuid: Optional[uuid.UUID] = None,
    ) -> Table:
        identifier = self.identifier_to_tuple_without_catalog(identifier)

        if identifier in self.__tables:
            raise TableAlreadyExistsError(f"Table already exists: {identifier}")

        if not location:
            location = f'{self._warehouse_location}/{"/".join(identifier)}'
        location = location.rstrip("/")

        metadata = new_table_metadata(
            schema=schema,
            partition_spec=partition_spec,
            location=location,
            properties=properties,
            table_uuid=table_uuid,
        )
        metadata_location = self._get_metadata_location(location)
        io = self._load_file_io(properties=metadata.properties, location=metadata_location)
        self._write_metadata(metadata, io, metadata_location)

        table = Table(
            identifier=identifier,
            metadata=metadata,
            metadata_location=metadata_location,
            io=io,
            catalog=self,
        )
        self.__tables[identifier] = table
        logger.debug("Created table %s at %s", ".".join(identifier), metadata_location)
        return table

    def register_table(self, identifier: Union[str, Identifier], metadata_location: str) -> Table:
        identifier = self.identifier_to_tuple_without_catalog(identifier)

        if identifier in self.__tables:
            raise TableAlreadyExistsError(f"Table already exists: {identifier}")

        io = self._load_file_io(location=metadata_location)
        metadata = FromInputFile.table_metadata(io.new_input(metadata_location))
        table = Table(
            identifier=identifier,
            metadata=metadata,
            metadata_location=metadata_location,
            io=self._load_file_io(properties=metadata.properties, location=metadata_location),
            catalog=self,
        )
        self.__tables[identifier] = table
        return table

    def commit_metadata(self, table: Table, metadata: TableMetadata) -> Table:
        identifier = self.identifier_to_tuple_without_catalog(table.name())
        current_table = self.load_table(identifier)
        if metadata == current_table.metadata:
            # no changes, do nothing
            return current_table

        new_metadata_version = self._parse_metadata_version(current_table.metadata_location) + 1
        new_metadata_location = self._get_metadata_location(current_table.metadata.location, new_metadata_version)
        updated_metadata = metadata.add_metadata_log_entry(
            current_table.metadata_location, current_table.metadata.last_updated_ms
        )
        self._write_metadata(updated_metadata, current_table.io, new_metadata_location)

        # readers that still hold the previous table keep their view of the metadata
        new_table = Table(
            identifier=identifier,
            metadata=updated_metadata,
            metadata_location=new_metadata_location,
            io=current_table.io,
            catalog=self,
        )
        self.__tables[identifier] = new_table
        logger.debug("Committed version %d of table %s", new_metadata_version, ".".join(identifier))
        return new_table

    def load_table(self, identifier: Union[str, Identifier]) -> Table:
        identifier = self.identifier_to_tuple_without_catalog(identifier)
        try:
            current = self.__tables[identifier]
        except KeyError as error:
            raise NoSuchTableError(f"Table does not exist: {identifier}") from error
        return Table(
            identifier=identifier,
            metadata=current.metadata,
            metadata_location=current.metadata_location,
            io=current.io,
            catalog=self,
        )

    def drop_table(self, identifier: Union[str, Identifier]) -> None:
        identifier = self.identifier_to_tuple_without_catalog(identifier)
        try:
            self.__tables.pop(identifier)
        except KeyError as error:
            raise NoSuchTableError(f"Table does not exist: {identifier}") from error

    def list_tables(self, namespace: Optional[Union[str, Identifier]] = None) -> List[Identifier]:
        if namespace:
            namespace = Catalog.identifier_to_tuple(namespace)
            list_tables = [table_identifier for table_identifier in self.__tables.keys() if namespace == table_identifier[:-1]]
        else:
            list_tables = list(self.__tables.keys())

        return list_tables

    def list_namespaces(self) -> List[Identifier]:
        return sorted({Catalog.namespace_from(table_identifier) for table_identifier in self.__tables.keys()})
