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

import logging
from os import path
from os.path import dirname, realpath
import re
from schema import And, Schema, Optional, Use
import yaml

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

DEFAULT_CONFIG_DIR = realpath(f"{dirname(realpath(__file__))}/../resources/config")

DEFAULT_CONFIG_FILE = 'default_config.yml'

DEFAULT_INSTANCE_TYPE = 't3.medium'

DEFAULT_INSTANCE_COUNT = 1

# code-server AMI built for the labs
DEFAULT_AMI_MAP = {
    'us-east-2': 'ami-04f167a56786e4b09'
}

# GiB
DEFAULT_VOLUME_SIZE = 20

DEFAULT_FOLDER_PATH = '/home/student/minikube-security-lab'

def is_cidr(s):
    return re.fullmatch(r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}/\d{1,2}', s) is not None

def is_region(s):
    return re.fullmatch(r'[a-z]{2}(-[a-z]+)+-\d', s) is not None

def get_config_schema(config):
    return Schema(
    {
        # Optional so can be specified on the command-line
        Optional('StackName'): And(str, len),
        # Optional so can be specified on the command-line
        Optional('Region'): And(str, is_region),
        Optional('Account'): And(Use(str), lambda s: re.fullmatch(r'\d{12}', s)),
        # DomainName:
        #     Existing public hosted zone. Each instance gets a record in it.
        Optional('DomainName'): And(str, len),
        # HostedZoneId:
        #     Optional. If not specified then the hosted zone is looked up by DomainName.
        Optional('HostedZoneId'): And(str, lambda s: re.fullmatch(r'Z[A-Z0-9]+', s)),
        Optional('InstanceType', default=DEFAULT_INSTANCE_TYPE): str,
        Optional('InstanceCount', default=DEFAULT_INSTANCE_COUNT): And(int, lambda n: not isinstance(n, bool) and n >= 1),
        # AllowedIps:
        #     CIDRs that can reach the instances over HTTPS.
        Optional('AllowedIps', default=[]): [And(str, is_cidr)],
        Optional('AmiMap', default=DEFAULT_AMI_MAP): {And(str, is_region): And(str, lambda s: s.startswith('ami-'))},
        Optional('VolumeSize', default=DEFAULT_VOLUME_SIZE): And(int, lambda n: n >= 8),
        # FolderPath:
        #     Folder opened by the access URL.
        Optional('FolderPath', default=DEFAULT_FOLDER_PATH): And(str, lambda s: s.startswith('/')),
        # UserDataCommands:
        #     Passed to the instance user data as is.
        Optional('UserDataCommands', default=[]): [str],
    }
    )

def check_schema(config_in):
    # Validate config against schema
    config_schema = get_config_schema(config_in)
    validated_config = config_schema.validate(config_in)
    return validated_config

def resolve_config_file_path(config_file_path=None):
    '''
    Find the config file.

    Can be an absolute path, a path relative to the current directory or a filename in the config directory.
    '''
    if not config_file_path:
        config_file_path = f"{DEFAULT_CONFIG_DIR}/{DEFAULT_CONFIG_FILE}"
    if path.isabs(config_file_path):
        if not path.exists(config_file_path):
            raise FileNotFoundError(f"{config_file_path} does not exist")
        return config_file_path
    if path.exists(config_file_path):
        return realpath(config_file_path)
    if path.exists(f"{DEFAULT_CONFIG_DIR}/{config_file_path}"):
        return realpath(f"{DEFAULT_CONFIG_DIR}/{config_file_path}")
    raise FileNotFoundError(f"Could not find {config_file_path}")

def load_config_file(config_file_path):
    '''
    Load a YAML config file without validating it.

    Raises FileNotFoundError or yaml.YAMLError.
    '''
    logger.info(f"Using config: {config_file_path}")
    with open(config_file_path, 'r') as config_file:
        config = yaml.safe_load(config_file)
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"{config_file_path} must contain a YAML mapping")
    return config
