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

"""
Deploy the lab machines with the CDK and list the URLs of the running lab instances.

If you run this directly, make sure to have all the Python and CDK dependencies installed.
"""

import argparse
import boto3
from botocore.exceptions import ClientError, ProfileNotFound
from colored import fg, attr
import logging
from os.path import dirname, realpath
from schema import SchemaError
import subprocess # nosec
import sys
import yaml

from lab_machines import binding_registry, config_schema, dns, lab_instances
from lab_machines.binding_registry import BindingRegistry, BindingError
from lab_machines.config_schema import check_schema, load_config_file, resolve_config_file_path
from lab_machines.dns import Route53RecordUpdater, find_hosted_zone_id
from lab_machines.lab_instances import bind_lab_instances, get_lab_instances, pending_labels

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

CDK_COMMANDS = ["deploy", "diff", "ls", "list", "synth", "synthesize", "destroy", "bootstrap"]

def set_log_level(level):
    for module_logger in [logger, binding_registry.logger, config_schema.logger, dns.logger, lab_instances.logger]:
        module_logger.setLevel(level)

def build_cdk_command(cdk_cmd, install_parameters, profile=None):
    '''
    Build the cdk command line with the install parameters passed as context variables.
    '''
    cmd = ['cdk', cdk_cmd]
    if cdk_cmd == 'bootstrap':
        cmd.append(f"aws://{install_parameters['account_id']}/{install_parameters['region']}")
    for key, value in install_parameters.items():
        if value is None:
            continue
        cmd += ['-c', f"{key}={value}"]
    if cdk_cmd in ['deploy', 'destroy']:
        cmd += ['--require-approval', 'never']
    if cdk_cmd == 'destroy':
        cmd.append('--force')
    if profile:
        cmd += ['--profile', profile]
    return cmd

def get_lab_urls(registry, zone_name, region, folder_path):
    '''
    Returns a list of (ordinal, label, access url, console url) for the bound instances.
    '''
    lab_urls = []
    for binding in registry.bindings():
        if binding.address is None:
            continue
        lab_urls.append((
            binding.ordinal,
            binding.label,
            registry.access_url(binding.label, zone_name, folder_path),
            registry.console_url(binding.label, region)
        ))
    return lab_urls

class LabMachinesInstaller():

    def __init__(self):
        self.install_parameters = {}

    def main(self, argv=None):
        parser = argparse.ArgumentParser(description="Create VSCode lab machines with stable DNS names.")
        parser.add_argument("--config-file", type=str, help="Configuration file. Can be absolute or relative path or filename in the config directory.")
        parser.add_argument("--stack-name", type=str, help="CloudFormation stack name.")
        parser.add_argument("--profile", "-p", type=str, help="AWS CLI profile to use.")
        parser.add_argument("--region", "-r", type=str, help="AWS region where you want to deploy the lab machines.")
        parser.add_argument("--domain-name", type=str, help="Existing Route53 hosted zone for the instance DNS records.")
        parser.add_argument("--instance-count", type=int, help="Number of lab instances.")
        parser.add_argument("--cdk-cmd", type=str, choices=CDK_COMMANDS, default=None, help="CDK command to run.")
        parser.add_argument("--list-urls", action='store_true', help="List the URLs of the running lab instances.")
        parser.add_argument("--sync-dns", action='store_true', help="Upsert the A record of every running lab instance. Requires --list-urls.")
        parser.add_argument("--debug", action='store_const', const=True, default=False, help="Enable debug logging")
        args = parser.parse_args(argv)

        if args.debug:
            set_log_level(logging.DEBUG)

        if not args.cdk_cmd and not args.list_urls:
            logger.error(f"{fg('red')}Must specify --cdk-cmd or --list-urls{attr('reset')}")
            sys.exit(1)
        if args.sync_dns and not args.list_urls:
            logger.error(f"{fg('red')}--sync-dns requires --list-urls{attr('reset')}")
            sys.exit(1)

        self.config = self.get_config(args.config_file)

        # Apply command line arguments to the config
        for config_key, arg_value in [('StackName', args.stack_name), ('Region', args.region), ('DomainName', args.domain_name), ('InstanceCount', args.instance_count)]:
            if arg_value is None:
                continue
            if config_key in self.config and self.config[config_key] != arg_value:
                logger.info(f"{config_key} overridden on command line from {self.config[config_key]} to {arg_value}")
            self.config[config_key] = arg_value
        try:
            self.config = check_schema(self.config)
        except SchemaError as e:
            logger.error(f"{fg('red')}Invalid configuration\n{e}{attr('reset')}")
            sys.exit(1)
        for config_key in ['StackName', 'Region', 'DomainName']:
            if config_key not in self.config:
                logger.error(f"{fg('red')}Must specify --{config_key_to_switch(config_key)} on the command line or {config_key} in the config file.{attr('reset')}")
                sys.exit(1)

        # Load AWS custom profile if specified
        try:
            session = boto3.session.Session(profile_name=args.profile, region_name=self.config['Region'])
        except ProfileNotFound:
            logger.error(f"{fg('red')}Profile {args.profile} not found. Check ~/.aws/credentials file{attr('reset')}")
            sys.exit(1)

        self.install_parameters['stack_name'] = self.config['StackName']
        self.install_parameters['region'] = self.config['Region']
        self.install_parameters['domain_name'] = self.config['DomainName']
        self.install_parameters['instance_count'] = self.config['InstanceCount']
        self.install_parameters['hosted_zone_id'] = self.config.get('HostedZoneId', None)
        self.install_parameters['config_file'] = self.config_file_path
        for install_parameter, value in self.install_parameters.items():
            logger.info(f"{install_parameter:30}: {value}")

        if args.cdk_cmd:
            self.run_cdk(session, args.cdk_cmd, args.profile)

        if args.list_urls:
            self.list_urls(session, args.sync_dns)

    def get_config(self, config_file):
        try:
            self.config_file_path = resolve_config_file_path(config_file)
            return load_config_file(self.config_file_path)
        except FileNotFoundError as err:
            logger.error(f"{fg('red')}{err}{attr('reset')}")
            sys.exit(1)
        except (yaml.YAMLError, ValueError) as err:
            logger.error(f"{fg('red')}Config file is not valid. Verify syntax, {err}{attr('reset')}")
            sys.exit(1)

    def run_cdk(self, session, cdk_cmd, profile):
        if cdk_cmd == 'bootstrap':
            # Retrieve the AWS Account ID for CDK
            try:
                self.install_parameters['account_id'] = session.client('sts').get_caller_identity()['Account']
            except ClientError as err:
                logger.error(f"{fg('red')}Unable to retrieve the Account ID due to {err}{attr('reset')}")
                sys.exit(1)

        # Use script location as current working directory
        install_directory = realpath(f"{dirname(realpath(__file__))}/..")
        cmd = build_cdk_command(cdk_cmd, self.install_parameters, profile)
        logger.info(f"\nExecuting {' '.join(cmd)} in {install_directory}")
        returncode = subprocess.call(cmd, cwd=install_directory) # nosec
        if returncode != 0:
            logger.error(f"{fg('red')}{' '.join(cmd)} failed with return code {returncode}{attr('reset')}")
            sys.exit(returncode)
        if cdk_cmd == 'deploy':
            logger.info(f"{fg('green')}Lab machines were successfully deployed!{attr('reset')}")

    def list_urls(self, session, sync_dns):
        region = self.config['Region']
        zone_name = self.config['DomainName']
        record_updater = None
        try:
            if sync_dns:
                route53_client = session.client('route53')
                hosted_zone_id = self.config.get('HostedZoneId', None)
                if not hosted_zone_id:
                    hosted_zone_id = find_hosted_zone_id(route53_client, zone_name)
                record_updater = Route53RecordUpdater(hosted_zone_id, zone_name, route53_client=route53_client)
            registry = BindingRegistry(self.config['StackName'], record_updater=record_updater)
            lab_instances = get_lab_instances(session.client('ec2', region_name=region), self.config['StackName'])
            bind_lab_instances(registry, lab_instances)
        except (ClientError, ValueError, BindingError) as err:
            logger.error(f"{fg('red')}Unable to get the lab instances of {self.config['StackName']}: {err}{attr('reset')}")
            sys.exit(1)

        if not lab_instances:
            logger.warning(f"No running lab instances found for {self.config['StackName']}")
            return
        for label in pending_labels(registry):
            logger.warning(f"{label} doesn't have a public ip address yet")
        for ordinal, label, access_url, console_url in get_lab_urls(registry, zone_name, region, self.config['FolderPath']):
            print(f"{fg('green')}Instance {ordinal}{attr('reset')} ({label})")
            print(f"    URL:     {access_url}")
            print(f"    SSM URL: {console_url}")

def config_key_to_switch(config_key):
    return {'StackName': 'stack-name', 'Region': 'region', 'DomainName': 'domain-name'}[config_key]

if __name__ == "__main__":
    app = LabMachinesInstaller()
    app.main()
