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
import pytest

from pymetatables.utils.properties import METADATA_SCAN_MAX_WORKERS, property_as_int


def test_property_as_int() -> None:
    assert property_as_int({METADATA_SCAN_MAX_WORKERS: "4"}, METADATA_SCAN_MAX_WORKERS) == 4


def test_property_as_int_default() -> None:
    assert property_as_int({}, METADATA_SCAN_MAX_WORKERS) is None
    assert property_as_int({}, METADATA_SCAN_MAX_WORKERS, default=8) == 8
    assert property_as_int({METADATA_SCAN_MAX_WORKERS: ""}, METADATA_SCAN_MAX_WORKERS, default=8) == 8


def test_property_as_int_invalid() -> None:
    with pytest.raises(
        ValueError, match="Could not parse table property read.metadata.scan.max-workers to an integer: many"
    ):
        property_as_int({METADATA_SCAN_MAX_WORKERS: "many"}, METADATA_SCAN_MAX_WORKERS)
