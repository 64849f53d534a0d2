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
"""Data types used in describing table schemas.

This module implements the data types of the table format. Every
type is an immutable pydantic model that serializes to the same JSON representation that is
stored in the table metadata, which makes it possible to round-trip a schema through the
metadata file.

Example:
    >>> str(ListType(element_id=3, element_type=StringType(), element_required=True))
    'list<string>'
    >>> parse_type("decimal(9, 2)")
    DecimalType(precision=9, scale=2)
"""

from __future__ import annotations

import re
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import Field, SerializeAsAny, field_validator, model_serializer

from pymetatables.typedef import MetadataBaseModel

DECIMAL_REGEX = re.compile(r"decimal\((\d+),\s*(\d+)\)")
FIXED_REGEX = re.compile(r"fixed\[(\d+)\]")


class MetadataType(MetadataBaseModel):
    """Base type for all data types.

    Example:
        >>> str(MetadataType)
        "<class 'pymetatables.types.MetadataType'>"
    """

    @property
    def is_primitive(self) -> bool:
        return isinstance(self, PrimitiveType)

    @property
    def is_struct(self) -> bool:
        return isinstance(self, StructType)


class PrimitiveType(MetadataType):
    """Base class for all primitive types."""

    _type_string: ClassVar[str] = ""

    @model_serializer
    def ser_model(self) -> str:
        return str(self)

    def __repr__(self) -> str:
        """Return the string representation of the PrimitiveType class."""
        return f"{type(self).__name__}()"

    def __str__(self) -> str:
        """Return the string representation of the PrimitiveType class."""
        return self._type_string


class FixedType(PrimitiveType):
    """A fixed data type.

    Example:
        >>> FixedType(8)
        FixedType(length=8)
        >>> FixedType(8) == FixedType(8)
        True
    """

    length: int = Field()

    def __init__(self, length: int, **data: Any) -> None:
        super().__init__(length=length, **data)

    def __len__(self) -> int:
        """Return the length of an instance of the FixedType class."""
        return self.length

    def __str__(self) -> str:
        """Return the string representation of the FixedType class."""
        return f"fixed[{self.length}]"

    def __repr__(self) -> str:
        """Return the string representation of the FixedType class."""
        return f"FixedType(length={self.length})"


class DecimalType(PrimitiveType):
    """A decimal data type.

    Example:
        >>> DecimalType(32, 3)
        DecimalType(precision=32, scale=3)
    """

    precision: int = Field()
    scale: int = Field()

    def __init__(self, precision: int, scale: int, **data: Any) -> None:
        super().__init__(precision=precision, scale=scale, **data)

    def __str__(self) -> str:
        """Return the string representation of the DecimalType class."""
        return f"decimal({self.precision}, {self.scale})"

    def __repr__(self) -> str:
        """Return the string representation of the DecimalType class."""
        return f"DecimalType(precision={self.precision}, scale={self.scale})"


class BooleanType(PrimitiveType):
    _type_string: ClassVar[str] = "boolean"


class IntegerType(PrimitiveType):
    """An Integer data type, represented as a 32-bit signed integer."""

    _type_string: ClassVar[str] = "int"


class LongType(PrimitiveType):
    """A Long data type, represented as a 64-bit signed integer."""

    _type_string: ClassVar[str] = "long"


class FloatType(PrimitiveType):
    _type_string: ClassVar[str] = "float"


class DoubleType(PrimitiveType):
    _type_string: ClassVar[str] = "double"


class DateType(PrimitiveType):
    """A Date data type, stored as days since 1970-01-01."""

    _type_string: ClassVar[str] = "date"


class TimeType(PrimitiveType):
    """A Time data type, stored as microseconds since midnight."""

    _type_string: ClassVar[str] = "time"


class TimestampType(PrimitiveType):
    """A Timestamp data type without a zone, stored as microseconds since the epoch."""

    _type_string: ClassVar[str] = "timestamp"


class TimestamptzType(PrimitiveType):
    """A Timestamp data type adjusted to UTC, stored as microseconds since the epoch."""

    _type_string: ClassVar[str] = "timestamptz"


class StringType(PrimitiveType):
    _type_string: ClassVar[str] = "string"


class UUIDType(PrimitiveType):
    _type_string: ClassVar[str] = "uuid"


class BinaryType(PrimitiveType):
    _type_string: ClassVar[str] = "binary"


_PRIMITIVES: Dict[str, PrimitiveType] = {
    "boolean": BooleanType(),
    "int": IntegerType(),
    "long": LongType(),
    "float": FloatType(),
    "double": DoubleType(),
    "date": DateType(),
    "time": TimeType(),
    "timestamp": TimestampType(),
    "timestamptz": TimestamptzType(),
    "string": StringType(),
    "uuid": UUIDType(),
    "binary": BinaryType(),
}


def parse_type(value: Any) -> MetadataType:
    """Parse the JSON representation of a type.

    Primitive types are stored as strings, nested types as objects with a `type` discriminator.

    Args:
        value: A type instance, its string form or its JSON object.

    Returns:
        MetadataType: The parsed type.

    Raises:
        ValueError: When the value does not describe a known type.
    """
    if isinstance(value, MetadataType):
        return value
    if isinstance(value, str):
        if primitive := _PRIMITIVES.get(value):
            return primitive
        if match := DECIMAL_REGEX.fullmatch(value):
            return DecimalType(int(match.group(1)), int(match.group(2)))
        if match := FIXED_REGEX.fullmatch(value):
            return FixedType(int(match.group(1)))
        raise ValueError(f"Unknown type: {value}")
    if isinstance(value, dict):
        nested_type = value.get("type")
        if nested_type == "struct":
            return StructType.model_validate(value)
        if nested_type == "list":
            return ListType.model_validate(value)
        if nested_type == "map":
            return MapType.model_validate(value)
    raise ValueError(f"Cannot parse type from: {value}")


class NestedField(MetadataType):
    """Represents a field of a struct, a map key, a map value, or a list element.

    This is where field IDs, names, docs, and nullability are tracked.

    Example:
        >>> str(NestedField(
        ...     field_id=1,
        ...     name='foo',
        ...     field_type=FixedType(22),
        ...     required=False,
        ... ))
        '1: foo: optional fixed[22]'
    """

    field_id: int = Field(alias="id")
    name: str = Field()
    field_type: SerializeAsAny[MetadataType] = Field(alias="type")
    required: bool = Field(default=False)
    doc: Optional[str] = Field(default=None, repr=False)

    def __init__(
        self,
        field_id: Optional[int] = None,
        name: Optional[str] = None,
        field_type: Optional[MetadataType] = None,
        required: bool = False,
        doc: Optional[str] = None,
        **data: Any,
    ):
        # We need an init when we want to use positional arguments, but
        # need also to support the aliases.
        data["id"] = data["id"] if "id" in data else field_id
        data["name"] = name
        data["type"] = data["type"] if "type" in data else field_type
        data["required"] = required
        data["doc"] = doc
        super().__init__(**data)

    @field_validator("field_type", mode="before")
    @classmethod
    def _parse_field_type(cls, value: Any) -> MetadataType:
        return parse_type(value)

    def __str__(self) -> str:
        """Return the string representation of the NestedField class."""
        doc = "" if not self.doc else f" ({self.doc})"
        req = "required" if self.required else "optional"
        return f"{self.field_id}: {self.name}: {req} {self.field_type}{doc}"

    @property
    def optional(self) -> bool:
        return not self.required


class StructType(MetadataType):
    """A struct type.

    Example:
        >>> str(StructType(
        ...     NestedField(1, "required_field", StringType(), True),
        ...     NestedField(2, "optional_field", IntegerType())
        ... ))
        'struct<1: required_field: required string, 2: optional_field: optional int>'
    """

    fields: Tuple[NestedField, ...] = Field(default_factory=tuple)

    def __init__(self, *fields: NestedField, **data: Any):
        # In case we use positional arguments, instead of keyword args
        if fields:
            data["fields"] = fields
        super().__init__(**data)

    @model_serializer
    def ser_model(self) -> Dict[str, Any]:
        return {"type": "struct", "fields": [field.model_dump() for field in self.fields]}

    def field(self, field_id: int) -> Optional[NestedField]:
        for field in self.fields:
            if field.field_id == field_id:
                return field
        return None

    def field_by_name(self, name: str, case_sensitive: bool = True) -> Optional[NestedField]:
        for field in self.fields:
            if field.name == name or (not case_sensitive and field.name.lower() == name.lower()):
                return field
        return None

    def __str__(self) -> str:
        """Return the string representation of the StructType class."""
        return f"struct<{', '.join(map(str, self.fields))}>"

    def __repr__(self) -> str:
        """Return the string representation of the StructType class."""
        return f"StructType(fields=({', '.join(map(repr, self.fields))},))"

    def __len__(self) -> int:
        """Return the length of an instance of the StructType class."""
        return len(self.fields)


class ListType(MetadataType):
    """A list type.

    Example:
        >>> ListType(element_id=3, element_type=StringType(), element_required=True)
        ListType(element_id=3, element_type=StringType(), element_required=True)
    """

    element_id: int = Field(alias="element-id")
    element_type: SerializeAsAny[MetadataType] = Field(alias="element")
    element_required: bool = Field(alias="element-required", default=True)

    def __init__(
        self, element_id: Optional[int] = None, element: Optional[MetadataType] = None, element_required: bool = True, **data: Any
    ):
        data["element-id"] = data["element-id"] if "element-id" in data else element_id
        if element is None:
            element = data.pop("element_type", None)
        data["element"] = data["element"] if "element" in data else element
        data["element-required"] = data["element-required"] if "element-required" in data else element_required
        super().__init__(**data)

    @field_validator("element_type", mode="before")
    @classmethod
    def _parse_element_type(cls, value: Any) -> MetadataType:
        return parse_type(value)

    @model_serializer
    def ser_model(self) -> Dict[str, Any]:
        return {
            "type": "list",
            "element-id": self.element_id,
            "element": self.element_type.model_dump(),
            "element-required": self.element_required,
        }

    @property
    def element_field(self) -> NestedField:
        return NestedField(
            field_id=self.element_id,
            name="element",
            field_type=self.element_type,
            required=self.element_required,
        )

    def __str__(self) -> str:
        """Return the string representation of the ListType class."""
        return f"list<{self.element_type}>"


class MapType(MetadataType):
    """A map type.

    Example:
        >>> MapType(key_id=1, key_type=StringType(), value_id=2, value_type=IntegerType(), value_required=True)
        MapType(key_id=1, key_type=StringType(), value_id=2, value_type=IntegerType(), value_required=True)
    """

    key_id: int = Field(alias="key-id")
    key_type: SerializeAsAny[MetadataType] = Field(alias="key")
    value_id: int = Field(alias="value-id")
    value_type: SerializeAsAny[MetadataType] = Field(alias="value")
    value_required: bool = Field(alias="value-required", default=True)

    def __init__(
        self,
        key_id: Optional[int] = None,
        key_type: Optional[MetadataType] = None,
        value_id: Optional[int] = None,
        value_type: Optional[MetadataType] = None,
        value_required: bool = True,
        **data: Any,
    ):
        data["key-id"] = data["key-id"] if "key-id" in data else key_id
        data["key"] = data["key"] if "key" in data else key_type
        data["value-id"] = data["value-id"] if "value-id" in data else value_id
        data["value"] = data["value"] if "value" in data else value_type
        data["value-required"] = data["value-required"] if "value-required" in data else value_required
        super().__init__(**data)

    @field_validator("key_type", "value_type", mode="before")
    @classmethod
    def _parse_entry_type(cls, value: Any) -> MetadataType:
        return parse_type(value)

    @model_serializer
    def ser_model(self) -> Dict[str, Any]:
        return {
            "type": "map",
            "key-id": self.key_id,
            "key": self.key_type.model_dump(),
            "value-id": self.value_id,
            "value": self.value_type.model_dump(),
            "value-required": self.value_required,
        }

    @property
    def key_field(self) -> NestedField:
        return NestedField(field_id=self.key_id, name="key", field_type=self.key_type, required=True)

    @property
    def value_field(self) -> NestedField:
        return NestedField(field_id=self.value_id, name="value", field_type=self.value_type, required=self.value_required)

    def __str__(self) -> str:
        """Return the string representation of the MapType class."""
        return f"map<{self.key_type}, {self.value_type}>"
