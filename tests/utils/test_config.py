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
from unittest import mock

import pytest
from strictyaml import as_document

from pymetatables.typedef import UTF8, RecursiveDict
from pymetatables.utils.config import Config, _lowercase_dictionary_keys, merge_config

EXAMPLE_ENV = {"PYMETATABLES_CATALOG__PRODUCTION__WAREHOUSE": "s3://bucket/warehouse"}


def _write_config(directory: str, content: RecursiveDict) -> None:
    with open(os.path.join(directory, ".pymetatables.yaml"), "w", encoding=UTF8) as file:
        file.write(as_document(content).as_yaml())


def test_config() -> None:
    """To check if all the file lookups go well without any mocking"""
    assert Config()


@mock.patch.dict(os.environ, EXAMPLE_ENV)
def test_from_environment_variables() -> None:
    assert Config().get_catalog_config("production") == {"warehouse": "s3://bucket/warehouse"}


@mock.patch.dict(os.environ, EXAMPLE_ENV)
def test_from_environment_variables_uppercase() -> None:
    assert Config().get_catalog_config("PRODUCTION") == {"warehouse": "s3://bucket/warehouse"}


@mock.patch.dict(
    os.environ,
    {
        "PYMETATABLES_CATALOG__PRODUCTION__S3__REGION": "eu-north-1",
        "PYMETATABLES_CATALOG__PRODUCTION__S3__ACCESS_KEY_ID": "username",
    },
)
def test_fix_nested_objects_from_environment_variables() -> None:
    assert Config().get_catalog_config("PRODUCTION") == {
        "s3.region": "eu-north-1",
        "s3.access-key-id": "username",
    }


@mock.patch.dict(os.environ, EXAMPLE_ENV)
@mock.patch.dict(os.environ, {"PYMETATABLES_CATALOG__DEVELOPMENT__WAREHOUSE": "/tmp/warehouse"})
def test_list_all_known_catalogs() -> None:
    catalogs = Config().get_known_catalogs()
    assert "production" in catalogs
    assert "development" in catalogs


def test_unknown_catalog() -> None:
    assert Config().get_catalog_config("does-not-exist") is None


def test_from_configuration_files(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    _write_config(config_path, {"catalog": {"production": {"warehouse": "s3://bucket/warehouse"}}})

    monkeypatch.setenv("PYMETATABLES_HOME", config_path)
    assert Config().get_catalog_config("production") == {"warehouse": "s3://bucket/warehouse"}


def test_environment_overrides_configuration_file(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    _write_config(config_path, {"catalog": {"production": {"warehouse": "/tmp/from-file", "type": "in-memory"}}})

    monkeypatch.setenv("PYMETATABLES_HOME", config_path)
    monkeypatch.setenv("PYMETATABLES_CATALOG__PRODUCTION__WAREHOUSE", "/tmp/from-env")
    assert Config().get_catalog_config("production") == {"warehouse": "/tmp/from-env", "type": "in-memory"}


def test_default_catalog_name(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    _write_config(config_path, {"default-catalog": "production"})

    monkeypatch.setenv("PYMETATABLES_HOME", config_path)
    assert Config().get_default_catalog_name() == "production"


def test_lowercase_dictionary_keys() -> None:
    uppercase_keys = {"UPPER": {"NESTED_UPPER": {"YES"}}}
    expected = {"upper": {"nested_upper": {"YES"}}}
    assert _lowercase_dictionary_keys(uppercase_keys) == expected  # type: ignore


def test_merge_config() -> None:
    lhs: RecursiveDict = {"common_key": "abc123", "nested": {"a": "1"}}
    rhs: RecursiveDict = {"common_key": "xyz789", "nested": {"b": "2"}}
    result = merge_config(lhs, rhs)
    assert result["common_key"] == rhs["common_key"]
    assert result["nested"] == {"a": "1", "b": "2"}


def test_from_configuration_files_get_int(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = str(tmp_path_factory.mktemp("config"))
    _write_config(config_path, {"max-workers": "4", "warehouse": "nope"})

    monkeypatch.setenv("PYMETATABLES_HOME", config_path)
    assert Config().get_int("max-workers") == 4
    assert Config().get_int("missing") is None

    with pytest.raises(ValueError, match="warehouse should be an integer or left unset. Current value: nope"):
        Config().get_int("warehouse")


def test_max_workers_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYMETATABLES_MAX_WORKERS", "2")
    assert Config().get_int("max-workers") == 2
