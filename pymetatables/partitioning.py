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

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ConfigDict, Field, field_serializer, field_validator

from pymetatables.schema import Schema
from pymetatables.transforms import IdentityTransform, Transform, VoidTransform, parse_transform
from pymetatables.typedef import MetadataBaseModel
from pymetatables.types import NestedField, StringType, StructType

INITIAL_PARTITION_SPEC_ID = 0
PARTITION_FIELD_ID_START: int = 1000


class PartitionField(MetadataBaseModel):
    """PartitionField represents how one partition value is derived from the source column via transformation.

    Attributes:
        source_id(int): The source column id of table's schema.
        field_id(int): The partition field id across all the table partition specs.
        transform(Transform): The transform used to produce partition values from source column.
        name(str): The name of this partition field.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source_id: int = Field(alias="source-id")
    field_id: int = Field(alias="field-id")
    transform: Transform = Field()
    name: str = Field()

    def __init__(
        self,
        source_id: Optional[int] = None,
        field_id: Optional[int] = None,
        transform: Optional[Transform] = None,
        name: Optional[str] = None,
        **data: Any,
    ):
        if source_id is not None:
            data["source-id"] = source_id
        if field_id is not None:
            data["field-id"] = field_id
        if transform is not None:
            data["transform"] = transform
        if name is not None:
            data["name"] = name

        super().__init__(**data)

    @field_validator("transform", mode="before")
    @classmethod
    def _parse_transform(cls, value: Any) -> Transform:
        return parse_transform(value)

    @field_serializer("transform")
    def _serialize_transform(self, transform: Transform) -> str:
        return str(transform)

    def __str__(self) -> str:
        """Return the string representation of the PartitionField class."""
        return f"{self.field_id}: {self.name}: {self.transform}({self.source_id})"


class PartitionSpec(MetadataBaseModel):
    """
    PartitionSpec captures the transformation from table data to partition values.

    Attributes:
        spec_id(int): any change to PartitionSpec will produce a new specId.
        fields(Tuple[PartitionField): list of partition fields to produce partition values.
    """

    spec_id: int = Field(alias="spec-id", default=INITIAL_PARTITION_SPEC_ID)
    fields: Tuple[PartitionField, ...] = Field(default_factory=tuple)

    def __init__(
        self,
        *fields: PartitionField,
        **data: Any,
    ):
        if fields:
            data["fields"] = tuple(fields)
        super().__init__(**data)

    def __eq__(self, other: Any) -> bool:
        """
        Produce a boolean to return True if two objects are considered equal.

        Note:
            Equality of PartitionSpec is determined by spec_id and partition fields only.
        """
        if not isinstance(other, PartitionSpec):
            return False
        return self.spec_id == other.spec_id and self.fields == other.fields

    def __hash__(self) -> int:
        """Return the hash of the spec id and fields."""
        return hash((self.spec_id, self.fields))

    def __str__(self) -> str:
        """
        Produce a human-readable string representation of PartitionSpec.

        Note:
            Only include list of partition fields in the PartitionSpec's string representation.
        """
        result_str = "["
        if self.fields:
            result_str += "\n  " + "\n  ".join([str(field) for field in self.fields]) + "\n"
        result_str += "]"
        return result_str

    def __repr__(self) -> str:
        """Return the string representation of the PartitionSpec class."""
        fields = f"{', '.join(repr(column) for column in self.fields)}, " if self.fields else ""
        return f"PartitionSpec({fields}spec_id={self.spec_id})"

    def is_unpartitioned(self) -> bool:
        return not self.fields or all(isinstance(field.transform, VoidTransform) for field in self.fields)

    def partition_type(self, schema: Schema) -> StructType:
        """Produce a struct of the PartitionSpec.

        The partition fields should be optional:

        - All partition transforms are required to produce null if the input value is null, so it can
          happen when the source column is optional.
        - Partition fields may be added later, in which case not all files would have the result field,
          and it may be null.

        There is a case where we can guarantee that a partition field in the first and only partition spec
        that uses a required source column will never be null, but it doesn't seem worth tracking this case.

        :param schema: The schema to bind to.
        :return: A StructType that represents the PartitionSpec, with a NestedField for each PartitionField.
        """
        nested_fields = []
        for field in self.fields:
            source_type = _source_type(field, [schema])
            result_type = field.transform.result_type(source_type)
            nested_fields.append(NestedField(field.field_id, field.name, result_type, required=False))
        return StructType(*nested_fields)


UNPARTITIONED_PARTITION_SPEC = PartitionSpec(spec_id=0)


def _source_type(field: PartitionField, schemas: List[Schema]) -> Any:
    """Find the type of the source column of a partition field.

    The column may have been dropped from newer schemas, so every schema is searched, in order.
    A source column that is not found anywhere is presented as a string, the same way an unknown
    transform is.
    """
    for schema in schemas:
        try:
            return schema.find_type(field.source_id)
        except ValueError:
            continue
    return StringType()


def partition_struct(specs: List[PartitionSpec], schemas: List[Schema]) -> StructType:
    """Produce the union of the partition types of all specs, keyed by partition field id.

    Args:
        specs: All the partition specs of a table.
        schemas: The schemas of the table, newest first.

    Returns:
        StructType: One optional field per distinct partition field id, ordered by field id.
    """
    struct_fields: Dict[int, NestedField] = {}
    for spec in specs:
        for field in spec.fields:
            if field.field_id in struct_fields:
                continue
            source_type = _source_type(field, schemas)
            struct_fields[field.field_id] = NestedField(
                field.field_id, field.name, field.transform.result_type(source_type), required=False
            )
    return StructType(*[struct_fields[field_id] for field_id in sorted(struct_fields)])


def identity_spec(schema: Schema, *column_names: str, spec_id: int = INITIAL_PARTITION_SPEC_ID) -> PartitionSpec:
    """Build a spec that partitions by the raw values of the named columns."""
    return PartitionSpec(
        *[
            PartitionField(
                source_id=schema.find_field(name).field_id,
                field_id=PARTITION_FIELD_ID_START + pos,
                transform=IdentityTransform(),
                name=name,
            )
            for pos, name in enumerate(column_names)
        ],
        spec_id=spec_id,
    )
