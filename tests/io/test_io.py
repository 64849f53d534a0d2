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
import os
from pathlib import Path

import pytest

from pymetatables.io import ARROW_FILE_IO, PY_IO_IMPL, load_file_io
from pymetatables.io.pyarrow import PyArrowFileIO


def test_custom_local_input_file(tmp_path: Path) -> None:
    file_location = os.path.join(tmp_path, "foo.txt")
    with open(file_location, "wb") as write_file:
        write_file.write(b"foo")

    input_file = PyArrowFileIO().new_input(location=f"file://{file_location}")
    with input_file.open() as f:
        data = f.read()

    assert data == b"foo"
    assert len(input_file) == 3
    assert input_file.exists()


def test_custom_local_output_file(tmp_path: Path) -> None:
    file_location = os.path.join(tmp_path, "nested", "foo.txt")

    output_file = PyArrowFileIO().new_output(location=file_location)
    with output_file.create() as f:
        f.write(b"foo")

    with open(file_location, "rb") as f:
        assert f.read() == b"foo"
    assert len(output_file) == 3


def test_output_file_already_exists(tmp_path: Path) -> None:
    file_location = os.path.join(tmp_path, "foo.txt")
    output_file = PyArrowFileIO().new_output(location=file_location)
    with output_file.create() as f:
        f.write(b"foo")

    with pytest.raises(FileExistsError, match="Cannot create file, already exists"):
        output_file.create()

    with output_file.create(overwrite=True) as f:
        f.write(b"bar")
    with output_file.to_input_file().open() as f:
        assert f.read() == b"bar"


def test_input_file_missing(tmp_path: Path) -> None:
    input_file = PyArrowFileIO().new_input(location=os.path.join(tmp_path, "missing.avro"))
    assert not input_file.exists()
    with pytest.raises(FileNotFoundError):
        input_file.open()


def test_delete(tmp_path: Path) -> None:
    file_location = os.path.join(tmp_path, "foo.txt")
    with open(file_location, "wb") as write_file:
        write_file.write(b"foo")

    io = PyArrowFileIO()
    io.delete(file_location)
    assert not os.path.exists(file_location)

    with pytest.raises(FileNotFoundError):
        io.delete(file_location)


def test_parse_location() -> None:
    assert PyArrowFileIO.parse_location("s3://bucket/warehouse/t") == ("s3", "bucket", "bucket/warehouse/t")
    assert PyArrowFileIO.parse_location("file:///tmp/t") == ("file", "", "/tmp/t")
    assert PyArrowFileIO.parse_location("hdfs://namenode:8020/t") == ("hdfs", "namenode:8020", "/t")


def test_unknown_scheme() -> None:
    with pytest.raises(ValueError, match="Unrecognized filesystem type in URI: ftp"):
        PyArrowFileIO().new_input("ftp://host/file")


def test_load_file_io_default() -> None:
    assert isinstance(load_file_io(), PyArrowFileIO)


def test_load_file_io_by_location() -> None:
    assert isinstance(load_file_io(location="s3://bucket/warehouse"), PyArrowFileIO)


def test_load_file_io_py_io_impl() -> None:
    file_io = load_file_io({PY_IO_IMPL: ARROW_FILE_IO, "buffer-size": "1024"})
    assert isinstance(file_io, PyArrowFileIO)
    assert file_io.properties["buffer-size"] == "1024"


def test_load_file_io_py_io_impl_not_a_path() -> None:
    with pytest.raises(ValueError, match="py-io-impl should be full path"):
        load_file_io({PY_IO_IMPL: "PyArrowFileIO"})


def test_load_file_io_py_io_impl_missing_module() -> None:
    with pytest.raises(ValueError, match="Could not initialize FileIO: not.a.module.FileIO"):
        load_file_io({PY_IO_IMPL: "not.a.module.FileIO"})
