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
import gzip
import json
from pathlib import Path

import pytest

from pymetatables.io.pyarrow import PyArrowFileIO
from pymetatables.serializers import Compressor, FromInputFile, GzipCompressor, NoopCompressor, ToOutputFile
from pymetatables.table.metadata import TableMetadata


def test_get_compressor() -> None:
    assert isinstance(Compressor.get_compressor("s3://bucket/metadata/00001-abc.gz.metadata.json"), GzipCompressor)
    assert isinstance(Compressor.get_compressor("s3://bucket/metadata/00001-abc.metadata.json"), NoopCompressor)


def test_write_and_read_table_metadata(tmp_path: Path, io: PyArrowFileIO, table_metadata: TableMetadata) -> None:
    location = str(tmp_path / "00001-abc.metadata.json")
    ToOutputFile.table_metadata(table_metadata, io.new_output(location))

    with open(location, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["format-version"] == 2
    assert raw["current-snapshot-id"] == 1003

    assert FromInputFile.table_metadata(io.new_input(location)) == table_metadata


def test_write_and_read_gzipped_table_metadata(tmp_path: Path, io: PyArrowFileIO, table_metadata: TableMetadata) -> None:
    location = str(tmp_path / "00001-abc.gz.metadata.json")
    ToOutputFile.table_metadata(table_metadata, io.new_output(location))

    with gzip.open(location, "rt", encoding="utf-8") as f:
        assert json.load(f)["table-uuid"] == str(table_metadata.table_uuid)

    assert FromInputFile.table_metadata(io.new_input(location)) == table_metadata


def test_write_table_metadata_does_not_overwrite(tmp_path: Path, io: PyArrowFileIO, table_metadata: TableMetadata) -> None:
    location = str(tmp_path / "00001-abc.metadata.json")
    ToOutputFile.table_metadata(table_metadata, io.new_output(location))

    with pytest.raises(FileExistsError):
        ToOutputFile.table_metadata(table_metadata, io.new_output(location))

    ToOutputFile.table_metadata(table_metadata, io.new_output(location), overwrite=True)
