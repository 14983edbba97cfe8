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

from aws_cdk import (
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_route53 as route53,
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
    Token,
    )
from constructs import Construct
from copy import deepcopy
import logging
from pprint import PrettyPrinter
from schema import SchemaError
from sys import exit
import yaml

from lab_machines.binding_registry import BindingRegistry
from lab_machines.config_schema import check_schema, load_config_file, resolve_config_file_path
from lab_machines.dns import DNS_RECORD_TTL
from lab_machines.lab_instances import ORDINAL_TAG, STACK_NAME_TAG

pp = PrettyPrinter()

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

class LabMachinesStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, config: dict = None, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Read the config file and then any overrides from the context variables.
        if config is None:
            self.config = self.read_config(self.node.try_get_context('config_file'))
        else:
            self.config = deepcopy(config)

        # Get context variables to override the config
        self.override_config_with_context()

        self.check_config()

        self.create_hosted_zone()

        self.create_vpc()

        self.create_security_group()

        self.create_instance_role()

        self.create_user_data()

        self.create_lab_instances()

    @staticmethod
    def read_config(config_file):
        try:
            config_file_path = resolve_config_file_path(config_file)
            config_parameters = load_config_file(config_file_path)
        except FileNotFoundError as err:
            logger.error(f"{err}")
            exit(1)
        except yaml.YAMLError as err:
            logger.error(f"Config file is not a valid YAML file. Verify syntax, {err}")
            exit(1)
        except ValueError as err:
            logger.error(f"{err}")
            exit(1)
        return config_parameters

    def override_config_with_context(self):
        '''
        Override the config using context variables
        '''
        # Config keys: [context_key, command_line_switch]
        #     command_line_switch is None if not required.
        config_keys = {
            'Region': ['region', None],
            'Account': ['account_id', None],
            'DomainName': ['domain_name', 'domain-name'],
            'HostedZoneId': ['hosted_zone_id', None],
            'InstanceType': ['instance_type', None],
            'InstanceCount': ['instance_count', None],
            'AllowedIps': ['allowed_ips', None],
        }
        for config_key in config_keys:
            context_key = config_keys[config_key][0]
            command_line_switch = config_keys[config_key][1]
            context_value = self.node.try_get_context(context_key)
            if context_value:
                if config_key == 'InstanceCount':
                    try:
                        context_value = int(context_value)
                    except ValueError:
                        logger.error(f"{context_key} must be an integer, not {context_value}")
                        exit(1)
                elif config_key == 'AllowedIps' and isinstance(context_value, str):
                    context_value = [ip.strip() for ip in context_value.split(',') if ip.strip()]
                if config_key not in self.config:
                    logger.info(f"{config_key:20} set from command line: {context_value}")
                elif context_value != self.config[config_key]:
                    logger.info(f"{config_key:20} in config file overridden on command line from {self.config[config_key]} to {context_value}")
                self.config[config_key] = context_value
            if command_line_switch and config_key not in self.config:
                logger.error(f"Must set --{command_line_switch} from the command line or {config_key} in the config files")
                exit(1)

    def check_config(self):
        '''
        Check config, set defaults, and sanity check the configuration.
        '''
        config_errors = 0

        if 'StackName' not in self.config:
            logger.info(f"config/StackName set from command line: {self.stack_name}")
        elif self.stack_name != self.config['StackName']:
            logger.info(f"config/StackName in config file overridden on command line from {self.config['StackName']} to {self.stack_name}")
        self.config['StackName'] = self.stack_name

        try:
            self.config = check_schema(self.config)
        except SchemaError:
            logger.exception(f"Invalid config")
            exit(1)

        if not Token.is_unresolved(self.region):
            if 'Region' in self.config and self.config['Region'] != self.region:
                logger.error(f"config/Region ({self.config['Region']}) doesn't match the stack's region ({self.region})")
                config_errors += 1
            if self.region not in self.config['AmiMap']:
                logger.error(f"No AMI configured for {self.region} in config/AmiMap:\n{pp.pformat(self.config['AmiMap'])}")
                config_errors += 1

        if not self.config['AllowedIps']:
            logger.warning(f"config/AllowedIps is empty so the lab instances won't be reachable over HTTPS.")

        if not self.config['UserDataCommands']:
            logger.warning(f"config/UserDataCommands is empty so the lab instances will not be configured.")

        if config_errors:
            exit(1)

    def create_hosted_zone(self):
        if 'HostedZoneId' in self.config:
            self.hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
                self, "HostedZone",
                hosted_zone_id = self.config['HostedZoneId'],
                zone_name = self.config['DomainName']
            )
        else:
            self.hosted_zone = route53.HostedZone.from_lookup(
                self, "HostedZone",
                domain_name = self.config['DomainName']
            )

    def create_vpc(self):
        self.vpc = ec2.Vpc(
            self, "Vpc",
            max_azs = 1,
            subnet_configuration = [
                ec2.SubnetConfiguration(
                    name = "PublicSubnet",
                    cidr_mask = 24,
                    subnet_type = ec2.SubnetType.PUBLIC
                )
            ]
        )

    def create_security_group(self):
        self.security_group = ec2.SecurityGroup(self, "SecurityGroup", vpc=self.vpc, description="Security group for VSCode Lab Machines")
        for allowed_ip in self.config['AllowedIps']:
            self.security_group.add_ingress_rule(ec2.Peer.ipv4(allowed_ip), ec2.Port.tcp(443), f"Allow HTTPS access from {allowed_ip}")

    def create_instance_role(self):
        self.instance_role = iam.Role(
            self, "Ec2Role",
            assumed_by = iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies = [
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore")
            ]
        )

    def create_user_data(self):
        self.user_data = ec2.UserData.for_linux()
        if self.config['UserDataCommands']:
            self.user_data.add_commands(*self.config['UserDataCommands'])

    def create_lab_instances(self):
        '''
        Create the instances, their DNS records and their URL outputs.

        The record name of each instance is its subdomain label from the registry.
        '''
        self.registry = BindingRegistry(self.stack_name)
        machine_image = ec2.MachineImage.generic_linux(self.config['AmiMap'])
        instance_type = ec2.InstanceType(self.config['InstanceType'])
        self.instances = {}
        for label in self.registry.register_instances(self.config['InstanceCount']):
            ordinal = self.registry.get(label).ordinal
            instance = ec2.Instance(
                self, f"Ec2Instance{ordinal}",
                instance_type = instance_type,
                machine_image = machine_image,
                vpc = self.vpc,
                vpc_subnets = ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
                security_group = self.security_group,
                role = self.instance_role,
                associate_public_ip_address = True,
                user_data = self.user_data,
                block_devices = [
                    ec2.BlockDevice(
                        device_name = '/dev/sda1',
                        volume = ec2.BlockDeviceVolume.ebs(self.config['VolumeSize'])
                    )
                ]
            )
            instance.apply_removal_policy(RemovalPolicy.DESTROY)
            Tags.of(instance).add(STACK_NAME_TAG, self.stack_name)
            Tags.of(instance).add(ORDINAL_TAG, str(ordinal))
            self.instances[ordinal] = instance

            self.registry.bind_address(label, instance.instance_public_ip, instance_id=instance.instance_id)

            route53.ARecord(
                self, f"DnsRecord{ordinal}",
                zone = self.hosted_zone,
                record_name = label,
                target = route53.RecordTarget.from_ip_addresses(instance.instance_public_ip),
                ttl = Duration.seconds(DNS_RECORD_TTL)
            )

            CfnOutput(self, f"Instance{ordinal}Url",
                value = self.registry.access_url(label, self.hosted_zone.zone_name, self.config['FolderPath']),
                description = f"URL for Instance {ordinal}"
            )
            CfnOutput(self, f"Instance{ordinal}SsmUrl",
                value = self.registry.console_url(label, self.region),
                description = f"SSM URL for Instance {ordinal}"
            )
        logger.info(f"{len(self.instances)} lab instances:\n{pp.pformat(self.registry.labels())}")
