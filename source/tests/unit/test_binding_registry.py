# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

import pytest
import threading

from lab_machines.binding_registry import AddressConflict, BindingRegistry, BindingState, DuplicateLabel, IncompleteBinding, UnknownLabel
from lab_machines.subdomain import derive_subdomain

ZONE_NAME = 'labs.example.com'


class RecordingUpdater():

    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def upsert_a_record(self, label, address):
        if self.fail:
            raise RuntimeError('route53 unavailable')
        self.calls.append(('UPSERT', label, address))

    def delete_a_record(self, label, address):
        if self.fail:
            raise RuntimeError('route53 unavailable')
        self.calls.append(('DELETE', label, address))


def test_register_returns_derived_label():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    assert label == derive_subdomain('Lab', 1)
    binding = registry.get(label)
    assert binding.ordinal == 1
    assert binding.seed == 'Lab-instance-1'
    assert binding.state == BindingState.PENDING
    assert binding.address is None
    assert binding.created_at is not None
    assert label in registry
    assert len(registry) == 1


def test_register_twice_raises_duplicate_label():
    registry = BindingRegistry('Lab')
    registry.register(1)
    with pytest.raises(DuplicateLabel):
        registry.register(1)
    assert len(registry) == 1


def test_register_invalid_ordinal():
    registry = BindingRegistry('Lab')
    with pytest.raises(ValueError):
        registry.register(0)


def test_invalid_stack_name():
    with pytest.raises(ValueError):
        BindingRegistry('')


def test_register_instances():
    registry = BindingRegistry('Lab')
    labels = registry.register_instances(3)
    assert labels == [derive_subdomain('Lab', ordinal) for ordinal in range(1, 4)]
    assert registry.labels() == labels
    with pytest.raises(ValueError):
        registry.register_instances(0)


def test_bind_address():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    binding = registry.bind_address(label, '1.2.3.4', instance_id='i-0123456789abcdef0')
    assert binding.state == BindingState.BOUND
    assert binding.address == '1.2.3.4'
    assert binding.instance_id == 'i-0123456789abcdef0'


def test_bind_same_address_is_idempotent():
    updater = RecordingUpdater()
    registry = BindingRegistry('Lab', record_updater=updater)
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    binding = registry.bind_address(label, '1.2.3.4')
    assert binding.state == BindingState.BOUND
    assert binding.address == '1.2.3.4'
    assert updater.calls == [('UPSERT', label, '1.2.3.4')]


def test_bind_different_address_raises_address_conflict():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    with pytest.raises(AddressConflict):
        registry.bind_address(label, '5.6.7.8')
    assert registry.get(label).address == '1.2.3.4'


def test_address_bound_to_one_label_only():
    registry = BindingRegistry('Lab')
    label1, label2 = registry.register_instances(2)
    registry.bind_address(label1, '1.2.3.4')
    with pytest.raises(AddressConflict):
        registry.bind_address(label2, '1.2.3.4')
    assert registry.get(label2).state == BindingState.PENDING


def test_bind_unknown_label():
    registry = BindingRegistry('Lab')
    with pytest.raises(UnknownLabel):
        registry.bind_address('0123456789ab', '1.2.3.4')


def test_bind_empty_address():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    with pytest.raises(ValueError):
        registry.bind_address(label, '')


def test_access_url_before_bind_raises_incomplete_binding():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    with pytest.raises(IncompleteBinding):
        registry.access_url(label, ZONE_NAME, '/home/student/x')
    with pytest.raises(IncompleteBinding):
        registry.console_url(label, 'us-east-2')


def test_access_url_after_bind():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    assert registry.access_url(label, ZONE_NAME, '/home/student/x') == f"https://{label}.labs.example.com/?folder=/home/student/x"


def test_console_url_needs_instance_id():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    with pytest.raises(IncompleteBinding):
        registry.console_url(label, 'us-east-2')
    registry.bind_address(label, '1.2.3.4', instance_id='i-0123456789abcdef0')
    assert registry.console_url(label, 'us-east-2') == 'https://us-east-2.console.aws.amazon.com/systems-manager/session-manager/i-0123456789abcdef0?region=us-east-2'


def test_release():
    updater = RecordingUpdater()
    registry = BindingRegistry('Lab', record_updater=updater)
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    binding = registry.release(label)
    assert binding.state == BindingState.RELEASED
    assert label not in registry
    assert updater.calls == [('UPSERT', label, '1.2.3.4'), ('DELETE', label, '1.2.3.4')]
    with pytest.raises(UnknownLabel):
        registry.bind_address(label, '1.2.3.4')
    with pytest.raises(UnknownLabel):
        registry.access_url(label, ZONE_NAME, '/home/student/x')
    with pytest.raises(UnknownLabel):
        registry.console_url(label, 'us-east-2')
    with pytest.raises(UnknownLabel):
        registry.release(label)


def test_release_pending_binding_doesnt_delete_record():
    updater = RecordingUpdater()
    registry = BindingRegistry('Lab', record_updater=updater)
    label = registry.register(1)
    registry.release(label)
    assert updater.calls == []


def test_release_frees_address_and_ordinal():
    registry = BindingRegistry('Lab')
    label = registry.register(1)
    registry.bind_address(label, '1.2.3.4')
    registry.release(label)
    # Replacement instance reuses the ordinal and gets the same label
    assert registry.register(1) == label
    registry.bind_address(label, '5.6.7.8')
    other_label = registry.register(2)
    registry.bind_address(other_label, '1.2.3.4')


def test_failed_record_update_leaves_registry_unchanged():
    registry = BindingRegistry('Lab', record_updater=RecordingUpdater(fail=True))
    label = registry.register(1)
    with pytest.raises(RuntimeError):
        registry.bind_address(label, '1.2.3.4')
    binding = registry.get(label)
    assert binding.state == BindingState.PENDING
    assert binding.address is None


def test_concurrent_register_of_same_ordinal():
    registry = BindingRegistry('Lab')
    results = []
    barrier = threading.Barrier(8)

    def register():
        barrier.wait()
        try:
            results.append(registry.register(1))
        except DuplicateLabel:
            results.append(None)

    threads = [threading.Thread(target=register) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len([result for result in results if result]) == 1
    assert len(registry) == 1


def test_lab_scenario():
    registry = BindingRegistry('Lab')
    labels = registry.register_instances(3)
    assert [registry.get(label).seed for label in labels] == ['Lab-instance-1', 'Lab-instance-2', 'Lab-instance-3']
    assert len(set(labels)) == 3
    for index, label in enumerate(labels):
        registry.bind_address(label, f"10.0.0.{index + 1}")
    access_urls = [registry.access_url(label, ZONE_NAME, '/home/student/x') for label in labels]
    assert len(set(access_urls)) == 3
    for label, access_url in zip(labels, access_urls):
        assert access_url == f"https://{label}.labs.example.com/?folder=/home/student/x"


def test_returned_bindings_are_copies():
    registry = BindingRegistry('Lab')
    label1, label2 = registry.register_instances(2)
    registry.bind_address(label1, '1.2.3.4')
    binding = registry.get(label2)
    binding.address = '1.2.3.4'
    binding.state = BindingState.BOUND
    for binding in registry.bindings():
        binding.state = BindingState.RELEASED
    assert registry.get(label2).state == BindingState.PENDING
    assert registry.get(label2).address is None
    assert registry.get(label1).state == BindingState.BOUND
    with pytest.raises(IncompleteBinding):
        registry.access_url(label2, ZONE_NAME, '/home/student/x')
    with pytest.raises(AddressConflict):
        registry.bind_address(label2, '1.2.3.4')


def test_concurrent_bind_of_same_address():
    updater = RecordingUpdater()
    registry = BindingRegistry('Lab', record_updater=updater)
    labels = registry.register_instances(8)
    results = []
    barrier = threading.Barrier(len(labels))

    def bind(label):
        barrier.wait()
        try:
            registry.bind_address(label, '1.2.3.4')
            results.append(label)
        except AddressConflict:
            results.append(None)

    threads = [threading.Thread(target=bind, args=(label,)) for label in labels]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    bound_labels = [result for result in results if result]
    assert len(results) == len(labels)
    assert len(bound_labels) == 1
    assert updater.calls == [('UPSERT', bound_labels[0], '1.2.3.4')]
    assert [binding.label for binding in registry.bindings() if binding.state == BindingState.BOUND] == bound_labels
