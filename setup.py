# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import setuptools


with open("README.md") as fp:
    long_description = fp.read()


setuptools.setup(
    name="vscode-lab-machines",
    version="0.0.1",

    description="CDK app for VSCode lab machines with stable DNS names",
    long_description=long_description,
    long_description_content_type="text/markdown",

    author="author",

    package_dir={"": "source"},
    packages=setuptools.find_packages(where="source", exclude=["tests", "tests.*"]),

    install_requires=[
        "aws-cdk-lib>=2.110.0",
        "boto3",
        "colored",
        "constructs>=10.0.0",
        "PyYAML",
        "schema",
    ],

    extras_require={
        "test": [
            "pytest",
        ],
    },

    python_requires=">=3.8",

    classifiers=[
        "Development Status :: 4 - Beta",

        "Intended Audience :: Developers",

        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",

        "Topic :: Utilities",
    ],
)
