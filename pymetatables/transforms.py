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
"""Partition transforms.

Only the read-side of a transform is needed to present partition data: the type of the
partition value it produces and a human readable rendering of that value. Applying a
transform to source data belongs to the write path.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional

from pymetatables.conversions import to_human_bytes
from pymetatables.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    FixedType,
    IntegerType,
    MetadataType,
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)
from pymetatables.utils.datetime import (
    to_human_day,
    to_human_hour,
    to_human_month,
    to_human_time,
    to_human_timestamp,
    to_human_timestamptz,
    to_human_year,
)

IDENTITY = "identity"
VOID = "void"
BUCKET = "bucket"
TRUNCATE = "truncate"
YEAR = "year"
MONTH = "month"
DAY = "day"
HOUR = "hour"

BUCKET_PARSER = re.compile(r"bucket\[(\d+)\]")
TRUNCATE_PARSER = re.compile(r"truncate\[(\d+)\]")


def parse_transform(v: Any) -> Transform:
    """Parse the string representation of a transform, as stored in a partition spec."""
    if isinstance(v, Transform):
        return v
    if isinstance(v, str):
        if v.lower() == IDENTITY:
            return IdentityTransform()
        elif v.lower() == VOID:
            return VoidTransform()
        elif match := BUCKET_PARSER.fullmatch(v.lower()):
            return BucketTransform(num_buckets=int(match.group(1)))
        elif match := TRUNCATE_PARSER.fullmatch(v.lower()):
            return TruncateTransform(width=int(match.group(1)))
        elif v.lower() == YEAR:
            return YearTransform()
        elif v.lower() == MONTH:
            return MonthTransform()
        elif v.lower() == DAY:
            return DayTransform()
        elif v.lower() == HOUR:
            return HourTransform()
    return UnknownTransform(transform=str(v))


class Transform(ABC):
    """Transform base class for concrete transforms."""

    @abstractmethod
    def result_type(self, source: MetadataType) -> MetadataType:
        """Return the type of the partition value for a given source type."""

    def to_human_string(self, source_type: MetadataType, value: Optional[Any]) -> str:
        """Render a partition value the way it is shown in metadata tables."""
        return "null" if value is None else str(value)

    @property
    def preserves_order(self) -> bool:
        return False

    def __str__(self) -> str:
        """Return the string representation of the Transform class."""
        return type(self).__name__

    def __repr__(self) -> str:
        """Return the string representation of the Transform class."""
        return f"{type(self).__name__}()"

    def __eq__(self, other: Any) -> bool:
        """Return the equality of two instances of the Transform class."""
        return str(self) == str(other) if isinstance(other, Transform) else False

    def __hash__(self) -> int:
        """Return the hash of the string representation."""
        return hash(str(self))


class IdentityTransform(Transform):
    """Transforms a value into itself.

    Example:
        >>> transform = IdentityTransform()
        >>> transform.to_human_string(IntegerType(), 1)
        '1'
    """

    def result_type(self, source: MetadataType) -> MetadataType:
        return source

    @property
    def preserves_order(self) -> bool:
        return True

    def to_human_string(self, source_type: MetadataType, value: Optional[Any]) -> str:
        return _human_string(value, source_type) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the IdentityTransform class."""
        return IDENTITY


class BucketTransform(Transform):
    """Base Transform class to transform a value into a bucket partition value."""

    _num_buckets: int

    def __init__(self, num_buckets: int) -> None:
        self._num_buckets = num_buckets

    @property
    def num_buckets(self) -> int:
        return self._num_buckets

    def result_type(self, source: MetadataType) -> MetadataType:
        return IntegerType()

    def __str__(self) -> str:
        """Return the string representation of the BucketTransform class."""
        return f"bucket[{self._num_buckets}]"

    def __repr__(self) -> str:
        """Return the string representation of the BucketTransform class."""
        return f"BucketTransform(num_buckets={self._num_buckets})"


class TruncateTransform(Transform):
    """A transform for truncating a value to a specified width."""

    _width: int

    def __init__(self, width: int) -> None:
        self._width = width

    @property
    def width(self) -> int:
        return self._width

    @property
    def preserves_order(self) -> bool:
        return True

    def result_type(self, source: MetadataType) -> MetadataType:
        return source

    def to_human_string(self, source_type: MetadataType, value: Optional[Any]) -> str:
        return _human_string(value, source_type) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the TruncateTransform class."""
        return f"truncate[{self._width}]"

    def __repr__(self) -> str:
        """Return the string representation of the TruncateTransform class."""
        return f"TruncateTransform(width={self._width})"


class TimeTransform(Transform, ABC):
    @property
    def preserves_order(self) -> bool:
        return True

    def result_type(self, source: MetadataType) -> MetadataType:
        return IntegerType()


class YearTransform(TimeTransform):
    """Transforms a datetime value into a year value."""

    def to_human_string(self, _: MetadataType, value: Optional[int]) -> str:
        return to_human_year(value) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the YearTransform class."""
        return YEAR


class MonthTransform(TimeTransform):
    """Transforms a datetime value into a month value."""

    def to_human_string(self, _: MetadataType, value: Optional[int]) -> str:
        return to_human_month(value) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the MonthTransform class."""
        return MONTH


class DayTransform(TimeTransform):
    """Transforms a datetime value into a day value."""

    def result_type(self, source: MetadataType) -> MetadataType:
        return DateType()

    def to_human_string(self, _: MetadataType, value: Optional[int]) -> str:
        return to_human_day(value) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the DayTransform class."""
        return DAY


class HourTransform(TimeTransform):
    """Transforms a datetime value into an hour value."""

    def to_human_string(self, _: MetadataType, value: Optional[int]) -> str:
        return to_human_hour(value) if value is not None else "null"

    def __str__(self) -> str:
        """Return the string representation of the HourTransform class."""
        return HOUR


class VoidTransform(Transform):
    """A transform that always returns None."""

    def result_type(self, source: MetadataType) -> MetadataType:
        return source

    def to_human_string(self, _: MetadataType, value: Optional[Any]) -> str:
        return "null"

    def __str__(self) -> str:
        """Return the string representation of the VoidTransform class."""
        return VOID


class UnknownTransform(Transform):
    """A transform that represents when an unknown transform is provided.

    Partition values are still presented, rendered as plain strings.
    """

    _transform: str

    def __init__(self, transform: str) -> None:
        self._transform = transform

    def result_type(self, source: MetadataType) -> MetadataType:
        return StringType()

    def __str__(self) -> str:
        """Return the string representation of the UnknownTransform class."""
        return self._transform

    def __repr__(self) -> str:
        """Return the string representation of the UnknownTransform class."""
        return f"UnknownTransform(transform={repr(self._transform)})"


def _human_string(value: Any, source_type: MetadataType) -> str:
    if isinstance(source_type, BooleanType):
        return "true" if value else "false"
    if isinstance(source_type, DateType):
        return to_human_day(value)
    if isinstance(source_type, TimeType):
        return to_human_time(value)
    if isinstance(source_type, TimestampType):
        return to_human_timestamp(value)
    if isinstance(source_type, TimestamptzType):
        return to_human_timestamptz(value)
    if isinstance(source_type, (BinaryType, FixedType)):
        return to_human_bytes(value)
    if isinstance(source_type, DecimalType) and isinstance(value, Decimal):
        return str(value.quantize(Decimal(10) ** -source_type.scale))
    if isinstance(source_type, UUIDType):
        return str(value)
    if isinstance(source_type, PrimitiveType):
        return str(value)
    raise ValueError(f"Cannot render a partition value of non-primitive type {source_type}")
