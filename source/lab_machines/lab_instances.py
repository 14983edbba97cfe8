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

'''
Find the lab instances of a stack and bind them in a registry.

The stack tags every instance with the stack name and its ordinal.
'''
import logging

from lab_machines.binding_registry import BindingState

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

STACK_NAME_TAG = 'LabStackName'
ORDINAL_TAG = 'LabInstanceOrdinal'

def _instance_preference(instance_dict):
    '''
    Sort key used to pick one instance when several have the same ordinal.

    A running instance beats a pending one and then the latest launch wins.
    '''
    launch_time = instance_dict.get('LaunchTime', None)
    return (
        instance_dict.get('State', {}).get('Name', None) == 'running',
        launch_time.timestamp() if launch_time else 0,
        instance_dict['InstanceId']
    )

def get_lab_instances(ec2_client, stack_name):
    '''
    Returns {ordinal: {'InstanceId': ..., 'PublicIpAddress': ...}}

    PublicIpAddress is None until the instance has one.
    If more than one instance has the same ordinal, for example while an instance
    is being replaced, the running instance that was launched last is used.
    '''
    lab_instances = {}
    instance_preferences = {}
    describe_instances_paginator = ec2_client.get_paginator('describe_instances')
    describe_instances_kwargs = {
        'Filters': [
            {'Name': f"tag:{STACK_NAME_TAG}", 'Values': [stack_name]},
            {'Name': 'instance-state-name', 'Values': ['pending', 'running']}
        ]
    }
    for describe_instances_response in describe_instances_paginator.paginate(**describe_instances_kwargs):
        for reservation_dict in describe_instances_response['Reservations']:
            for instance_dict in reservation_dict['Instances']:
                instance_id = instance_dict['InstanceId']
                tags = {tag['Key']: tag['Value'] for tag in instance_dict.get('Tags', [])}
                try:
                    ordinal = int(tags[ORDINAL_TAG])
                except (KeyError, ValueError):
                    logger.warning(f"Ignoring {instance_id} because it doesn't have a valid {ORDINAL_TAG} tag")
                    continue
                instance_preference = _instance_preference(instance_dict)
                if ordinal in lab_instances:
                    other_instance_id = lab_instances[ordinal]['InstanceId']
                    if instance_preference < instance_preferences[ordinal]:
                        logger.warning(f"Instances {other_instance_id} and {instance_id} both have {ORDINAL_TAG}={ordinal}. Using {other_instance_id}.")
                        continue
                    logger.warning(f"Instances {other_instance_id} and {instance_id} both have {ORDINAL_TAG}={ordinal}. Using {instance_id}.")
                instance_preferences[ordinal] = instance_preference
                lab_instances[ordinal] = {
                    'InstanceId': instance_id,
                    'PublicIpAddress': instance_dict.get('PublicIpAddress', None)
                }
    logger.info(f"Found {len(lab_instances)} lab instances for {stack_name}")
    return lab_instances

def bind_lab_instances(registry, lab_instances):
    '''
    Register and bind the lab instances in ordinal order.

    Instances that don't have a public address yet are left pending.
    Returns the bindings of the registry.
    '''
    registered_ordinals = {binding.ordinal: binding.label for binding in registry.bindings()}
    for ordinal in sorted(lab_instances):
        instance_info = lab_instances[ordinal]
        label = registered_ordinals.get(ordinal)
        if label is None:
            label = registry.register(ordinal)
        if not instance_info['PublicIpAddress']:
            logger.info(f"Instance {ordinal} ({instance_info['InstanceId']}) doesn't have a public ip address yet")
            continue
        registry.bind_address(label, instance_info['PublicIpAddress'], instance_id=instance_info['InstanceId'])
    return registry.bindings()

def pending_labels(registry):
    return [binding.label for binding in registry.bindings() if binding.state == BindingState.PENDING]
