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
from decimal import Decimal
from typing import Any

import pytest

from pymetatables.transforms import (
    BucketTransform,
    DayTransform,
    HourTransform,
    IdentityTransform,
    MonthTransform,
    Transform,
    TruncateTransform,
    UnknownTransform,
    VoidTransform,
    YearTransform,
    parse_transform,
)
from pymetatables.types import (
    BinaryType,
    BooleanType,
    DateType,
    DecimalType,
    FixedType,
    IntegerType,
    LongType,
    MetadataType,
    StringType,
    TimestampType,
    TimestamptzType,
    TimeType,
    UUIDType,
)


@pytest.mark.parametrize(
    "serialized,expected",
    [
        ("identity", IdentityTransform()),
        ("void", VoidTransform()),
        ("bucket[16]", BucketTransform(num_buckets=16)),
        ("truncate[4]", TruncateTransform(width=4)),
        ("year", YearTransform()),
        ("month", MonthTransform()),
        ("day", DayTransform()),
        ("hour", HourTransform()),
        ("Identity", IdentityTransform()),
    ],
)
def test_parse_transform(serialized: str, expected: Transform) -> None:
    assert parse_transform(serialized) == expected


def test_parse_transform_is_idempotent() -> None:
    transform = BucketTransform(num_buckets=8)
    assert parse_transform(transform) is transform


def test_parse_unknown_transform() -> None:
    transform = parse_transform("zorder")
    assert isinstance(transform, UnknownTransform)
    assert str(transform) == "zorder"
    assert repr(transform) == "UnknownTransform(transform='zorder')"
    assert transform.result_type(LongType()) == StringType()


def test_str_and_repr() -> None:
    assert str(BucketTransform(num_buckets=16)) == "bucket[16]"
    assert repr(BucketTransform(num_buckets=16)) == "BucketTransform(num_buckets=16)"
    assert str(TruncateTransform(width=4)) == "truncate[4]"
    assert repr(TruncateTransform(width=4)) == "TruncateTransform(width=4)"
    assert repr(IdentityTransform()) == "IdentityTransform()"


def test_equality_and_hash() -> None:
    assert BucketTransform(num_buckets=16) != BucketTransform(num_buckets=8)
    assert TruncateTransform(width=4) == TruncateTransform(width=4)
    assert IdentityTransform() != "identity"
    assert len({DayTransform(), DayTransform(), HourTransform()}) == 2


@pytest.mark.parametrize(
    "transform,source,expected",
    [
        (IdentityTransform(), StringType(), StringType()),
        (VoidTransform(), LongType(), LongType()),
        (BucketTransform(num_buckets=16), StringType(), IntegerType()),
        (TruncateTransform(width=4), StringType(), StringType()),
        (YearTransform(), DateType(), IntegerType()),
        (MonthTransform(), TimestampType(), IntegerType()),
        (DayTransform(), TimestamptzType(), DateType()),
        (HourTransform(), TimestampType(), IntegerType()),
    ],
)
def test_result_type(transform: Transform, source: MetadataType, expected: MetadataType) -> None:
    assert transform.result_type(source) == expected


def test_preserves_order() -> None:
    assert IdentityTransform().preserves_order
    assert TruncateTransform(width=2).preserves_order
    assert YearTransform().preserves_order
    assert not BucketTransform(num_buckets=2).preserves_order
    assert not VoidTransform().preserves_order


@pytest.mark.parametrize(
    "source_type,value,expected",
    [
        (BooleanType(), True, "true"),
        (BooleanType(), False, "false"),
        (IntegerType(), 34, "34"),
        (LongType(), -1234567890000, "-1234567890000"),
        (StringType(), "a/b/c=d", "a/b/c=d"),
        (DateType(), 17501, "2017-12-01"),
        (TimeType(), 36775038194, "10:12:55.038194"),
        (TimestampType(), 1512151975038194, "2017-12-01T18:12:55.038194"),
        (TimestamptzType(), 1512151975038194, "2017-12-01T18:12:55.038194+00:00"),
        (BinaryType(), b"\x00\x01\x02\x03", "AAECAw=="),
        (FixedType(4), b"\x00\x01\x02\x03", "AAECAw=="),
        (DecimalType(9, 2), Decimal("14.20"), "14.20"),
        (DecimalType(9, 2), Decimal("-1.50"), "-1.50"),
        (UUIDType(), uuid.UUID("f79c3e09-677c-4038-a2c4-ab12b0b2e33a"), "f79c3e09-677c-4038-a2c4-ab12b0b2e33a"),
        (LongType(), None, "null"),
    ],
)
def test_identity_human_string(source_type: MetadataType, value: Any, expected: str) -> None:
    assert IdentityTransform().to_human_string(source_type, value) == expected


@pytest.mark.parametrize(
    "transform,value,expected",
    [
        (YearTransform(), 47, "2017"),
        (MonthTransform(), 575, "2017-12"),
        (DayTransform(), 17501, "2017-12-01"),
        (HourTransform(), 420042, "2017-12-01-18"),
        (YearTransform(), None, "null"),
        (BucketTransform(num_buckets=16), 3, "3"),
        (BucketTransform(num_buckets=16), None, "null"),
        (VoidTransform(), 7, "null"),
    ],
)
def test_human_string(transform: Transform, value: Any, expected: str) -> None:
    assert transform.to_human_string(TimestampType(), value) == expected


def test_truncate_human_string() -> None:
    assert TruncateTransform(width=4).to_human_string(StringType(), "abcd") == "abcd"
    assert TruncateTransform(width=4).to_human_string(BinaryType(), b"\x00\x01") == "AAE="
    assert TruncateTransform(width=4).to_human_string(StringType(), None) == "null"
