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
Deterministic subdomain labels for lab instances.

The label only depends on the stack name and the instance ordinal so that
redeploying the same stack gives every instance the same DNS name.
'''
from hashlib import sha256

SUBDOMAIN_LENGTH = 12

def subdomain_seed(stack_name: str, ordinal: int) -> str:
    if not isinstance(stack_name, str) or not stack_name:
        raise ValueError(f"stack_name must be a non-empty string, not {stack_name!r}")
    if isinstance(ordinal, bool) or not isinstance(ordinal, int) or ordinal < 1:
        raise ValueError(f"ordinal must be an integer >= 1, not {ordinal!r}")
    return f"{stack_name}-instance-{ordinal}"

def derive_subdomain(stack_name: str, ordinal: int) -> str:
    '''
    Return the first 12 hex characters of the sha256 of the instance seed.
    '''
    seed = subdomain_seed(stack_name, ordinal)
    return sha256(seed.encode('utf-8')).hexdigest()[0:SUBDOMAIN_LENGTH]
