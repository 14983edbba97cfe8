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
Registry of lab instance DNS bindings.

Each lab instance gets a binding keyed by its subdomain label.
A binding starts out PENDING when the instance is requested, becomes BOUND
once the public address of the instance is known and is RELEASED when the
instance is torn down.

    PENDING -> BOUND -> RELEASED

Bindings returned by the registry are copies. Changing them doesn't change the registry.

If a record updater is passed in then every bind creates or updates the A
record for the label and every release of a bound label deletes it.
The updater is called before the registry is changed so a failed DNS change
doesn't leave the registry out of sync with DNS.
'''
from copy import copy
from datetime import datetime, timezone
from enum import Enum
import logging
import threading

from lab_machines.subdomain import derive_subdomain, subdomain_seed
from lab_machines import urls

logger = logging.getLogger(__file__)
logger_formatter = logging.Formatter('%(levelname)s: %(message)s')
logger_streamHandler = logging.StreamHandler()
logger_streamHandler.setFormatter(logger_formatter)
logger.addHandler(logger_streamHandler)
logger.propagate = False
logger.setLevel(logging.INFO)

class BindingError(Exception):
    pass

class DuplicateLabel(BindingError):
    pass

class UnknownLabel(BindingError):
    pass

class AddressConflict(BindingError):
    pass

class IncompleteBinding(BindingError):
    pass

class BindingState(Enum):
    PENDING = 'Pending'
    BOUND = 'Bound'
    RELEASED = 'Released'

class Binding():

    def __init__(self, ordinal, seed, label, created_at=None):
        self.ordinal = ordinal
        self.seed = seed
        self.label = label
        self.address = None
        self.instance_id = None
        if created_at is None:
            created_at = datetime.now(timezone.utc)
        self.created_at = created_at
        self.state = BindingState.PENDING

    def __repr__(self):
        return f"Binding(ordinal={self.ordinal}, label={self.label}, address={self.address}, instance_id={self.instance_id}, state={self.state.value})"

class BindingRegistry():

    def __init__(self, stack_name, record_updater=None):
        # Fail early on an invalid stack name
        subdomain_seed(stack_name, 1)
        self.stack_name = stack_name
        self.record_updater = record_updater
        self._bindings = {}
        self._labels_by_address = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._bindings)

    def __contains__(self, label):
        with self._lock:
            return label in self._bindings

    def register(self, ordinal):
        '''
        Add a pending binding for the instance ordinal and return its label.

        Raises DuplicateLabel if the label is already registered.
        '''
        seed = subdomain_seed(self.stack_name, ordinal)
        label = derive_subdomain(self.stack_name, ordinal)
        with self._lock:
            if label in self._bindings:
                existing_binding = self._bindings[label]
                raise DuplicateLabel(f"{label} for {seed} already registered for ordinal {existing_binding.ordinal} ({existing_binding.seed})")
            self._bindings[label] = Binding(ordinal, seed, label)
        logger.info(f"Registered {label} for {seed}")
        return label

    def register_instances(self, count):
        '''
        Register ordinals 1 through count and return the labels in ordinal order.
        '''
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError(f"Instance count must be an integer >= 1, not {count!r}")
        return [self.register(ordinal) for ordinal in range(1, count + 1)]

    def bind_address(self, label, address, instance_id=None):
        '''
        Bind the public address of the instance to a registered label.

        Binding the same address again does nothing except record a new instance id.
        Binding a different address to a bound label, or an address that is
        already bound to another label, raises AddressConflict.
        '''
        if not address:
            raise ValueError(f"No address given for {label}")
        with self._lock:
            binding = self._get(label)
            if binding.state == BindingState.BOUND:
                if binding.address != address:
                    raise AddressConflict(f"{label} is already bound to {binding.address}, can't bind it to {address}")
                if instance_id:
                    binding.instance_id = instance_id
                logger.debug(f"{label} already bound to {address}")
                return copy(binding)
            other_label = self._labels_by_address.get(address)
            if other_label is not None:
                raise AddressConflict(f"{address} is already bound to {other_label}, can't bind it to {label}")
            if self.record_updater:
                self.record_updater.upsert_a_record(label, address)
            binding.address = address
            if instance_id:
                binding.instance_id = instance_id
            binding.state = BindingState.BOUND
            self._labels_by_address[address] = label
        logger.info(f"Bound {label} to {address}")
        return copy(binding)

    def release(self, label):
        '''
        Remove the binding. Any later operation on the label raises UnknownLabel.
        '''
        with self._lock:
            binding = self._get(label)
            if binding.state == BindingState.BOUND and self.record_updater:
                self.record_updater.delete_a_record(label, binding.address)
            del self._bindings[label]
            if binding.address is not None:
                del self._labels_by_address[binding.address]
            binding.state = BindingState.RELEASED
        logger.info(f"Released {label}")
        return copy(binding)

    def get(self, label):
        with self._lock:
            return copy(self._get(label))

    def labels(self):
        return [binding.label for binding in self.bindings()]

    def bindings(self):
        with self._lock:
            return sorted((copy(binding) for binding in self._bindings.values()), key=lambda binding: binding.ordinal)

    def access_url(self, label, zone_name, path):
        with self._lock:
            binding = self._get_bound(label)
        return urls.access_url(binding.label, zone_name, path)

    def console_url(self, label, region):
        with self._lock:
            binding = self._get_bound(label)
            if not binding.instance_id:
                raise IncompleteBinding(f"{label} has no instance id")
        return urls.console_url(region, binding.instance_id)

    def _get(self, label):
        try:
            return self._bindings[label]
        except KeyError:
            raise UnknownLabel(f"{label} is not registered") from None

    def _get_bound(self, label):
        binding = self._get(label)
        if binding.state != BindingState.BOUND:
            raise IncompleteBinding(f"{label} has no address yet")
        return binding
