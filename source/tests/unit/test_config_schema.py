# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

from os import path
import pytest
from schema import SchemaError

from lab_machines.config_schema import DEFAULT_AMI_MAP, DEFAULT_CONFIG_DIR, DEFAULT_FOLDER_PATH, check_schema, load_config_file, resolve_config_file_path


def test_defaults():
    config = check_schema({'StackName': 'Lab', 'DomainName': 'labs.example.com'})
    assert config['InstanceType'] == 't3.medium'
    assert config['InstanceCount'] == 1
    assert config['AllowedIps'] == []
    assert config['AmiMap'] == DEFAULT_AMI_MAP
    assert config['VolumeSize'] == 20
    assert config['FolderPath'] == DEFAULT_FOLDER_PATH
    assert config['UserDataCommands'] == []


@pytest.mark.parametrize('config', [
    {'InstanceCount': 0},
    {'InstanceCount': True},
    {'AllowedIps': ['1.2.3.4']},
    {'Region': 'not a region'},
    {'AmiMap': {'us-east-2': 'img-123'}},
    {'FolderPath': 'home/student'},
    {'StackName': ''},
    {'HostedZoneId': 'hostedzone'},
    {'Unknown': 1},
])
def test_invalid_config(config):
    with pytest.raises(SchemaError):
        check_schema(config)


def test_account_converted_to_string():
    config = check_schema({'Account': 123456789012})
    assert config['Account'] == '123456789012'


def test_default_config_file_is_valid():
    config_file_path = resolve_config_file_path(None)
    assert config_file_path == path.join(DEFAULT_CONFIG_DIR, 'default_config.yml')
    config = check_schema(load_config_file(config_file_path))
    assert config['StackName'] == 'VscodeLabMachines'
    assert config['Region'] in config['AmiMap']
    assert 'systemctl start code-server@student' in config['UserDataCommands']


def test_resolve_config_file_in_config_dir():
    assert resolve_config_file_path('default_config.yml') == path.join(DEFAULT_CONFIG_DIR, 'default_config.yml')


def test_resolve_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        resolve_config_file_path(str(tmp_path / 'missing.yml'))
    with pytest.raises(FileNotFoundError):
        resolve_config_file_path('missing.yml')


def test_load_empty_and_invalid_config_files(tmp_path):
    empty_config_file = tmp_path / 'empty.yml'
    empty_config_file.write_text('')
    assert load_config_file(str(empty_config_file)) == {}
    list_config_file = tmp_path / 'list.yml'
    list_config_file.write_text('- a\n- b\n')
    with pytest.raises(ValueError):
        load_config_file(str(list_config_file))
