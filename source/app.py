#!/usr/bin/env python3
"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: MIT-0

Permission is hereby granted, free of charge, to any person obtaining a copy of this
software and associated documentation files (the "Software"), to deal in the Software
without restriction, including without limitation the rights to use, copy, modify,
merge, publish, distribute, sublicense, and/or sell copies of the Software, and to
permit persons to whom the Software is furnished to do so.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED,
INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A
PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT
HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE
SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
"""

import aws_cdk as cdk
from aws_cdk import Environment
import os

from lab_machines.lab_machines_stack import LabMachinesStack

DEFAULT_STACK_NAME = 'VscodeLabMachines'

app = cdk.App()

config = LabMachinesStack.read_config(app.node.try_get_context('config_file'))

stack_name = app.node.try_get_context('stack_name') or config.get('StackName', DEFAULT_STACK_NAME)

cdk_env = Environment(
    account = app.node.try_get_context('account_id') or config.get('Account', os.environ.get('CDK_DEFAULT_ACCOUNT')),
    region = app.node.try_get_context('region') or config.get('Region', os.environ.get('CDK_DEFAULT_REGION'))
)

LabMachinesStack(app, stack_name, config=config, env=cdk_env)

app.synth()
