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

from setuptools import find_packages, setup
from setuptools.command.sdist import sdist as _sdist


class sdist(_sdist):
    """Custom sdist that excludes .egg-info and setup.cfg."""

    def make_release_tree(self, base_dir: str, files: list[str]) -> None:
        # Filter egg-info from the file manifest
        files = [f for f in files if ".egg-info" not in f]

        super().make_release_tree(base_dir, files)

        # Remove setup.cfg after setuptools creates it
        setup_cfg = os.path.join(base_dir, "setup.cfg")
        if os.path.exists(setup_cfg):
            os.remove(setup_cfg)


packages = find_packages(include=["pymetatables*"])

setup(
    name="pymetatables",
    version="0.1.0",
    description="Metadata tables over the snapshots, manifests and data files of a table, served as Arrow tables",
    license="Apache-2.0",
    python_requires=">=3.9",
    packages=packages,
    install_requires=[
        "pydantic>=2.0,<3.0",
        "pyarrow>=14.0.0",
        "fastavro>=1.9.0",
        "cachetools>=5.3.0,<6.0.0",
        "pyparsing>=3.1.0,<4.0.0",
        "strictyaml>=1.7.0,<2.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.4"],
    },
    include_package_data=True,
    cmdclass={"sdist": sdist},
)
