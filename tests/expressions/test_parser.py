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
import importlib
import warnings
from decimal import Decimal

import pytest
from pyparsing import ParseException

from pymetatables.expressions import (
    AlwaysFalse,
    AlwaysTrue,
    And,
    EqualTo,
    GreaterThan,
    GreaterThanOrEqual,
    In,
    IsNull,
    LessThan,
    LessThanOrEqual,
    Not,
    NotEqualTo,
    NotIn,
    NotNull,
    NotStartsWith,
    Or,
    StartsWith,
)
from pymetatables.expressions import parser


def test_true() -> None:
    assert AlwaysTrue() == parser.parse("true")


def test_false() -> None:
    assert AlwaysFalse() == parser.parse("false")


def test_is_null() -> None:
    assert IsNull("partition.id") == parser.parse("partition.id is null")
    assert IsNull("partition.id") == parser.parse("partition.id IS NULL")


def test_not_null() -> None:
    assert NotNull("parent_id") == parser.parse("parent_id is not null")
    assert NotNull("parent_id") == parser.parse("parent_id IS NOT NULL")


def test_comparisons() -> None:
    assert EqualTo("status", 1) == parser.parse("status = 1")
    assert EqualTo("status", 1) == parser.parse("status == 1")
    assert NotEqualTo("status", 1) == parser.parse("status != 1")
    assert NotEqualTo("status", 1) == parser.parse("status <> 1")
    assert LessThan("record_count", 10) == parser.parse("record_count < 10")
    assert LessThanOrEqual("record_count", 10) == parser.parse("record_count <= 10")
    assert GreaterThan("record_count", 10) == parser.parse("record_count > 10")
    assert GreaterThanOrEqual("record_count", 10) == parser.parse("record_count >= 10")


def test_literal_on_the_left() -> None:
    assert GreaterThan("record_count", 10) == parser.parse("10 < record_count")
    assert LessThanOrEqual("record_count", 10) == parser.parse("10 >= record_count")
    assert EqualTo("status", 2) == parser.parse("2 = status")


def test_literal_types() -> None:
    assert EqualTo("file_format", "PARQUET") == parser.parse("file_format = 'PARQUET'")
    assert EqualTo("file_path", "it's") == parser.parse("file_path = 'it''s'")
    assert EqualTo("is_current_ancestor", True) == parser.parse("is_current_ancestor = true")
    assert EqualTo("snapshot_id", -1) == parser.parse("snapshot_id = -1")
    assert LessThan("price", Decimal("12.34")) == parser.parse("price < 12.34")


def test_in() -> None:
    assert In("status", {0, 1}) == parser.parse("status in (0, 1)")
    assert In("file_format", {"AVRO", "ORC"}) == parser.parse("file_format IN ('AVRO', 'ORC')")


def test_not_in() -> None:
    assert NotIn("status", {2}) == parser.parse("status not in (2)")


def test_like() -> None:
    assert StartsWith("file_path", "s3://bucket/") == parser.parse("file_path like 's3://bucket/%'")
    assert NotStartsWith("file_path", "s3://bucket/") == parser.parse("file_path NOT LIKE 's3://bucket/%'")


def test_like_without_trailing_wildcard() -> None:
    with pytest.raises(ValueError, match="LIKE expressions only support a trailing wildcard: %.parquet"):
        parser.parse("file_path like '%.parquet'")


def test_and_or_precedence() -> None:
    expected = Or(EqualTo("status", 1), And(EqualTo("content", 0), GreaterThan("record_count", 5)))
    assert expected == parser.parse("status = 1 or content = 0 and record_count > 5")


def test_parentheses() -> None:
    expected = And(Or(EqualTo("status", 1), EqualTo("content", 0)), GreaterThan("record_count", 5))
    assert expected == parser.parse("(status = 1 or content = 0) and record_count > 5")


def test_not() -> None:
    assert Not(EqualTo("status", 1)) == parser.parse("not status = 1")
    assert EqualTo("status", 1) == parser.parse("not not status = 1")


def test_nested_column() -> None:
    assert EqualTo("data_file.partition.id", 3) == parser.parse("data_file.partition.id = 3")


def test_keyword_is_not_a_column() -> None:
    with pytest.raises(ParseException):
        parser.parse("null = 1")


def test_trailing_garbage() -> None:
    with pytest.raises(ParseException):
        parser.parse("status = 1 status")


def test_import_without_warnings() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        importlib.reload(parser)

    assert EqualTo("status", 1) == parser.parse("status = 1")
