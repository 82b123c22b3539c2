import pytest
from pathlib import Path
from autoenc.infrastructure.event_bus import EventBus
from autoenc.domain.events import (
    Event,
    JobEvent,
    EncodeStarted,
    PublishCompleted,
)
from autoenc.domain.models import EncodeJob

class MockEvent(Event):
    message: str

def _job():
    return EncodeJob(
        source_path=Path("clip.MOV"),
        temp_path=Path("clip.MOV.encoding.tmp"),
        target_path=Path("clip.m4v"),
    )

def test_event_bus_subscribe_publish():
    bus = EventBus()
    received_events = []

    def callback(event: MockEvent):
        received_events.append(event)

    bus.subscribe(MockEvent, callback)

    event = MockEvent(message="hello")
    bus.publish(event)

    assert len(received_events) == 1
    assert received_events[0].message == "hello"

def test_event_bus_multiple_subscribers():
    bus = EventBus()
    results = {"a": False, "b": False}

    bus.subscribe(MockEvent, lambda e: results.update({"a": True}))
    bus.subscribe(MockEvent, lambda e: results.update({"b": True}))

    bus.publish(MockEvent(message="test"))

    assert results["a"] is True
    assert results["b"] is True

def test_event_bus_decorator_subscribe():
    bus = EventBus()
    received = []

    @bus.subscribe(MockEvent)
    def on_event(event: MockEvent):
        received.append(event)

    bus.publish(MockEvent(message="decorator"))
    assert len(received) == 1
    assert received[0].message == "decorator"

def test_event_bus_base_class_subscribers_receive_subclasses():
    bus = EventBus()
    job_events = []
    all_events = []
    bus.subscribe(JobEvent, job_events.append)
    bus.subscribe(Event, all_events.append)

    bus.publish(EncodeStarted(job=_job()))
    bus.publish(PublishCompleted(job=_job(), archived_path=Path("originals/clip.MOV")))
    bus.publish(MockEvent(message="other"))

    assert [type(e) for e in job_events] == [EncodeStarted, PublishCompleted]
    assert len(all_events) == 3

def test_event_bus_unsubscribe():
    bus = EventBus()
    received = []
    bus.subscribe(MockEvent, received.append)

    assert bus.unsubscribe(MockEvent, received.append) is True
    assert bus.unsubscribe(MockEvent, received.append) is False

    bus.publish(MockEvent(message="ignored"))
    assert received == []

def test_event_bus_failing_subscriber_does_not_stop_others(caplog):
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(MockEvent, broken)
    bus.subscribe(MockEvent, received.append)

    bus.publish(MockEvent(message="still delivered"))

    assert len(received) == 1
    assert "failed on MockEvent" in caplog.text

def test_event_bus_no_subscribers():
    bus = EventBus()
    # Publishing without subscribers is a no-op
    bus.publish(MockEvent(message="nobody listens"))
