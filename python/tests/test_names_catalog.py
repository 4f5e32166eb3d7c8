"""Tests for object names and the bean catalog."""

from __future__ import annotations

import pytest

from bean_stubs import FakeBean, FakeTransport
from beanctl.catalog import BeanCatalog, display_name
from beanctl.errors import CatalogUnavailableError, ConnectionLostError, MalformedNameError
from beanctl.names import ObjectName, domain_pattern


def test_parse_sorts_key_properties():
    name = ObjectName.parse("app:type=Cache,name=users")
    assert name.canonical == "app:name=users,type=Cache"
    assert str(name) == name.canonical
    assert name == ObjectName.parse("app:name=users,type=Cache")
    assert name.key_property("type") == "Cache"
    assert name.key_property("missing") is None


@pytest.mark.parametrize("text", ["no-colon", "app:", "app:type", "app:=x", "app:type=", "app:a=1,a=2", "app:*,*"])
def test_malformed_names_are_rejected(text):
    with pytest.raises(MalformedNameError):
        ObjectName.parse(text)


def test_names_sort_by_domain_then_canonical_key_list():
    names = [ObjectName.parse(text) for text in ("b:x=1", "a:name2=z", "a:name=a")]
    # plain string order: '2' sorts before '='
    assert [str(n) for n in sorted(names)] == ["a:name2=z", "a:name=a", "b:x=1"]


def test_patterns():
    everything = domain_pattern("*")
    assert everything.is_pattern
    assert everything.matches(ObjectName.parse("app:type=Cache"))
    scoped = domain_pattern("app*")
    assert scoped.matches(ObjectName.parse("application:type=X"))
    assert not scoped.matches(ObjectName.parse("other:type=X"))
    by_type = ObjectName.parse("app:type=Cache,*")
    assert by_type.matches(ObjectName.parse("app:type=Cache,name=a"))
    assert not by_type.matches(ObjectName.parse("app:type=Pool,name=a"))
    exact = ObjectName.parse("app:type=Cache")
    assert not exact.is_pattern
    assert not exact.matches(ObjectName.parse("app:type=Cache,name=a"))


def test_display_name_rules():
    assert display_name(ObjectName.parse("app:type=Cache,name=users")) == "Cache"
    assert display_name(ObjectName.parse("app:name=worker-1")) == "worker-1"
    assert display_name(ObjectName.parse("app:id=7,zone=eu")) == "eu"


def test_listing_is_ordered_by_handle(transport):
    beans = BeanCatalog(transport).list_beans()
    assert list(beans) == ["Cache", "worker-1", "Scheduler"]
    assert beans["Cache"] == ObjectName.parse("app:name=users,type=Cache")


def test_display_name_collision_keeps_last_handle():
    transport = FakeTransport()
    transport.add("app:type=Cache,name=a", FakeBean())
    transport.add("app:type=Cache,name=b", FakeBean())
    beans = BeanCatalog(transport).list_beans()
    assert len(beans) == 1
    assert beans["Cache"] == ObjectName.parse("app:type=Cache,name=b")


def test_domain_filter_is_applied():
    transport = FakeTransport()
    transport.add("app:type=Cache", FakeBean())
    transport.add("jvm:type=Memory", FakeBean())
    catalog = BeanCatalog(transport, "jvm")
    assert catalog.pattern == "jvm:*"
    assert list(catalog.list_beans()) == ["Memory"]


def test_resolve(transport):
    catalog = BeanCatalog(transport)
    assert catalog.resolve("Scheduler") == ObjectName.parse("app:type=Scheduler")
    assert catalog.resolve("Nope") is None


def test_listing_is_recomputed_each_time(transport):
    catalog = BeanCatalog(transport)
    assert catalog.resolve("Pool") is None
    transport.add("app:type=Pool", FakeBean())
    assert catalog.resolve("Pool") == ObjectName.parse("app:type=Pool")


def test_connection_loss_becomes_catalog_unavailable(transport):
    transport.fail_with = ConnectionLostError("socket closed")
    with pytest.raises(CatalogUnavailableError) as excinfo:
        BeanCatalog(transport).list_beans()
    assert isinstance(excinfo.value, ConnectionLostError)
