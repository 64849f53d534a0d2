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


class NoSuchTableError(Exception):
    """Raises when the table can't be found in the catalog."""


class TableAlreadyExistsError(Exception):
    """Raised when creating a table with a name that already exists."""


class NoSuchNamespaceError(Exception):
    """Raised when a referenced name-space is not found."""


class NamespaceAlreadyExistsError(Exception):
    """Raised when a name-space being created already exists in the catalog."""


class NoSuchSnapshotError(ValueError):
    """Raised when a snapshot id or point in time does not resolve to a snapshot of the table."""


class ValidationError(Exception):
    """Raises when there is an issue with the schema or the table metadata."""


class UnsupportedProjectionError(ValidationError):
    """Raised when a projection cannot be expressed against a nested type."""


class ManifestCorruptionError(Exception):
    """Raised when a manifest or manifest list cannot be decoded into a consistent set of entries."""


class ResolveError(Exception):
    pass


class NoSuchMetadataTableError(NoSuchTableError):
    """Raised when the suffix of a metadata table identifier is not a known metadata table."""
