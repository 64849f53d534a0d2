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
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import pytest

from pymetatables.conversions import from_bytes, to_bytes, to_human_bytes
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
    PrimitiveType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)


@pytest.mark.parametrize(
    "primitive_type,value,expected",
    [
        (BooleanType(), True, b"\x01"),
        (BooleanType(), False, b"\x00"),
        (IntegerType(), 34, b"\x22\x00\x00\x00"),
        (LongType(), 34, b"\x22\x00\x00\x00\x00\x00\x00\x00"),
        (DateType(), 17501, b"\x5d\x44\x00\x00"),
        (DoubleType(), 1.0, b"\x00\x00\x00\x00\x00\x00\xf0\x3f"),
        (FloatType(), 1.0, b"\x00\x00\x80\x3f"),
        (StringType(), "foo", b"foo"),
        (BinaryType(), b"\x00\x01", b"\x00\x01"),
        (FixedType(2), b"\x00\x01", b"\x00\x01"),
        (DecimalType(5, 2), Decimal("3.14"), b"\x01\x3a"),
        (DecimalType(5, 2), Decimal("-3.14"), b"\xfe\xc6"),
    ],
)
def test_to_bytes(primitive_type: PrimitiveType, value: Any, expected: bytes) -> None:
    assert to_bytes(primitive_type, value) == expected


@pytest.mark.parametrize(
    "primitive_type,value",
    [
        (BooleanType(), True),
        (IntegerType(), -2147483648),
        (LongType(), 9223372036854775807),
        (DateType(), -1),
        (TimeType(), 36775038194),
        (TimestampType(), 1512151975038194),
        (TimestamptzType(), 1512151975038194),
        (DoubleType(), -2.5),
        (StringType(), "héllo"),
        (UUIDType(), uuid.UUID("f79c3e09-677c-4038-a2c4-ab12b0b2e33a")),
        (DecimalType(10, 3), Decimal("-1234.567")),
        (DecimalType(10, 0), Decimal("0")),
    ],
)
def test_to_and_from_bytes(primitive_type: PrimitiveType, value: Any) -> None:
    assert from_bytes(primitive_type, to_bytes(primitive_type, value)) == value


def test_date_and_datetime_values() -> None:
    assert to_bytes(DateType(), date(2017, 12, 1)) == to_bytes(DateType(), 17501)
    assert to_bytes(TimestamptzType(), datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == to_bytes(LongType(), 1_000_000)


def test_uuid_from_bytes_is_passed_through() -> None:
    raw = uuid.UUID("f79c3e09-677c-4038-a2c4-ab12b0b2e33a").bytes
    assert to_bytes(UUIDType(), raw) == raw


def test_decimal_scale_mismatch() -> None:
    with pytest.raises(ValueError, match="scale of value does not match type decimal\\(5, 2\\): 3"):
        to_bytes(DecimalType(5, 2), Decimal("3.141"))


def test_decimal_precision_overflow() -> None:
    with pytest.raises(ValueError, match="precision of value is greater than precision of type"):
        to_bytes(DecimalType(3, 2), Decimal("31.41"))


def test_to_human_bytes() -> None:
    assert to_human_bytes(b"\x00\x01\x02\x03") == "AAECAw=="
    assert to_human_bytes(b"") == ""
