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
Create/delete lab instance A records in Route53.
'''
import boto3
import logging

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

# Short so that a replaced instance is reachable quickly
DNS_RECORD_TTL = 60

def find_hosted_zone_id(route53_client, domain_name):
    hosted_zone_name = f"{domain_name.rstrip('.')}."
    list_hosted_zones_paginator = route53_client.get_paginator('list_hosted_zones')
    for response in list_hosted_zones_paginator.paginate():
        for hosted_zone_info in response['HostedZones']:
            if hosted_zone_info['Name'] == hosted_zone_name:
                hosted_zone_id = hosted_zone_info['Id'].split('/')[-1]
                logger.info(f"{hosted_zone_name} hosted zone id: {hosted_zone_id}")
                return hosted_zone_id
    raise ValueError(f"No hosted zone named {hosted_zone_name} found.")

class Route53RecordUpdater():

    def __init__(self, hosted_zone_id, zone_name, route53_client=None, ttl=DNS_RECORD_TTL):
        self.hosted_zone_id = hosted_zone_id
        self.zone_name = zone_name.rstrip('.')
        if route53_client is None:
            route53_client = boto3.client('route53')
        self.route53_client = route53_client
        self.ttl = ttl

    def record_name(self, label):
        return f"{label}.{self.zone_name}"

    def upsert_a_record(self, label, address):
        self._change_a_record('UPSERT', label, address)

    def delete_a_record(self, label, address):
        self._change_a_record('DELETE', label, address)

    def _change_a_record(self, action, label, address):
        record_name = self.record_name(label)
        logger.info(f"{action} {record_name} A record, value={address}")
        self.route53_client.change_resource_record_sets(
            HostedZoneId = self.hosted_zone_id,
            ChangeBatch = {
                'Comment': f"{action} {label} DNS record",
                'Changes': [
                    {
                        'Action': action,
                        'ResourceRecordSet': {
                            'Name': record_name,
                            'Type': 'A',
                            'TTL': self.ttl,
                            'ResourceRecords': [{'Value': str(address)}]
                        }
                    }
                ]
            }
        )
