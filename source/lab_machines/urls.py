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
User facing URLs for a lab instance.

The formats are referenced by the lab documentation so they must not change.
'''

def _check_required(**fields):
    error_message = ""
    for name, value in fields.items():
        if not value:
            error_message += f"Missing {name}. "
    if error_message:
        raise ValueError(error_message.rstrip())

def access_url(label: str, zone_name: str, path: str) -> str:
    '''
    URL of the code-server instance opened on the lab folder.
    '''
    _check_required(label=label, zone_name=zone_name, path=path)
    # Route53 returns absolute zone names
    zone_name = zone_name.rstrip('.')
    return f"https://{label}.{zone_name}/?folder={path}"

def console_url(region: str, instance_id: str) -> str:
    '''
    Session Manager console URL for the instance.
    '''
    _check_required(region=region, instance_id=instance_id)
    return f"https://{region}.console.aws.amazon.com/systems-manager/session-manager/{instance_id}?region={region}"
