"""End-to-end tests: BeanAgent served over TCP, BeanTransport and the CLI."""

from __future__ import annotations

import socket
import threading

import pytest

from beanctl.agent import BeanAgent
from beanctl.catalog import BeanCatalog
from beanctl.cli import main
from beanctl.coercion import coerce
from beanctl.errors import (
    AgentConnectError,
    AttributeNotFoundError,
    ConnectionLostError,
    InstanceNotFoundError,
    InvalidAttributeValueError,
    OperationNotFoundError,
    RemoteInvocationError,
)
from beanctl.interpreter import CommandInterpreter
from beanctl.model import AttributeInfo, OperationInfo, ParameterInfo
from beanctl.names import ObjectName
from beanctl.transport import BeanTransport, TransportConfig

CACHE_NAME = "app:type=Cache,name=users"

CACHE_ATTRIBUTES = (
    AttributeInfo("Size", "int", writable=False),
    AttributeInfo("MaxSize", "int"),
    AttributeInfo("Enabled", "boolean"),
)
CACHE_OPERATIONS = (
    OperationInfo("put", "boolean", (ParameterInfo("key", "java.lang.String"),)),
    OperationInfo("put", "boolean", (ParameterInfo("key", "java.lang.String"), ParameterInfo("ttl", "long"))),
    OperationInfo("report", "java.lang.String"),
    OperationInfo("fail"),
)


class Cache:
    def __init__(self) -> None:
        self.Size = 12
        self.MaxSize = 100
        self.Enabled = True
        self.entries = {}

    def put(self, key, ttl=None):
        self.entries[key] = ttl
        return True

    def report(self):
        return "hits=3<br>misses=1"

    def fail(self):
        raise RuntimeError("cache is closed")


def _free_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def cache():
    return Cache()


@pytest.fixture
def agent(cache):
    server = BeanAgent(("127.0.0.1", 0))
    server.register(CACHE_NAME, cache, attributes=CACHE_ATTRIBUTES, operations=CACHE_OPERATIONS)
    server.register("app:type=Scheduler", object())
    server.register("jvm:type=Memory", object())
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=1.0)


@pytest.fixture
def client(agent):
    transport = BeanTransport(TransportConfig(host="127.0.0.1", port=agent.port, read_timeout=5.0))
    transport.connect()
    yield transport
    transport.close()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ("BEANCTL_HOST", "BEANCTL_PORT", "BEANCTL_DOMAIN", "BEANCTL_HISTORY", "BEANCTL_PROPERTIES"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def test_count_and_query(client):
    assert client.bean_count() == 3
    assert [str(n) for n in client.query_names("app:*")] == ["app:name=users,type=Cache", "app:type=Scheduler"]
    assert len(client.query_names("*:*")) == 3


def test_info_round_trips_metadata(client):
    info = client.get_bean_info(ObjectName.parse(CACHE_NAME))
    assert info.attributes == CACHE_ATTRIBUTES
    assert info.operations == CACHE_OPERATIONS


def test_get_and_set_attribute(client, cache):
    name = ObjectName.parse(CACHE_NAME)
    value = client.get_attribute(name, "MaxSize")
    assert (value.value, value.type_name) == (100, "int")
    client.set_attribute(name, "MaxSize", coerce("250", "int"))
    assert cache.MaxSize == 250
    assert client.get_attribute(name, "MaxSize").value == 250


def test_attribute_errors(client):
    name = ObjectName.parse(CACHE_NAME)
    with pytest.raises(AttributeNotFoundError):
        client.get_attribute(name, "Missing")
    with pytest.raises(AttributeNotFoundError):
        client.set_attribute(name, "Size", coerce("1", "int"))
    with pytest.raises(InvalidAttributeValueError):
        client.set_attribute(name, "MaxSize", coerce("big", "java.lang.String"))
    with pytest.raises(InstanceNotFoundError):
        client.get_attribute(ObjectName.parse("app:type=Gone"), "Size")


def test_invoke(client, cache):
    name = ObjectName.parse(CACHE_NAME)
    args = [coerce("k", "java.lang.String"), coerce("30", "long")]
    assert client.invoke(name, "put", args, ["java.lang.String", "long"]) is True
    assert cache.entries == {"k": 30}
    assert client.invoke(name, "report", [], []) == "hits=3<br>misses=1"


def test_invoke_errors(client):
    name = ObjectName.parse(CACHE_NAME)
    with pytest.raises(OperationNotFoundError):
        client.invoke(name, "put", [], ["int"])
    with pytest.raises(RemoteInvocationError) as excinfo:
        client.invoke(name, "fail", [], [])
    assert excinfo.value.reason == "mbean_exception"
    assert "cache is closed" in str(excinfo.value)


def test_handle_payload_echoes_seq_and_reports_errors(agent):
    assert agent.handle_payload({"cmd": "count", "seq": 7}) == {"status": "ok", "count": 3, "seq": 7}
    bad_name = agent.handle_payload({"cmd": "info", "name": "nocolon", "seq": 8})
    assert (bad_name["status"], bad_name["error"], bad_name["seq"]) == ("error", "malformed_name", 8)
    unknown = agent.handle_payload({"cmd": "reboot"})
    assert unknown["error"] == "unknown_cmd"
    assert "seq" not in unknown


def test_register_rejects_duplicates_and_patterns(agent):
    with pytest.raises(ValueError):
        agent.register(CACHE_NAME, object())
    with pytest.raises(ValueError):
        agent.register("app:type=X,*", object())
    agent.unregister("jvm:type=Memory")
    assert [str(n) for n in agent.names()] == ["app:name=users,type=Cache", "app:type=Scheduler"]


def test_interpreter_against_live_agent(client, cache, capsys):
    interp = CommandInterpreter(BeanCatalog(client), client)
    assert interp.execute(["Cache", "set", "MaxSize", "7"]) == 0
    assert cache.MaxSize == 7
    assert interp.execute(["Cache", "put", "k"]) == 0
    assert interp.execute(["Cache", "report"]) == 0
    assert interp.execute(["Cache", "fail"]) == 5
    assert interp.execute(["Cache", "set", "Size", "1"]) == 4
    captured = capsys.readouterr()
    assert captured.out == "MaxSize has been set to 7\ntrue\nhits=3\nmisses=1\n"
    assert cache.Size == 12


class Holder:
    def __init__(self) -> None:
        self.Value = 5
        self.Big = 2**40
        self.Ratio = 0.5
        self.Name = "alpha"
        self.Flag = True


def test_general_object_attribute_reports_live_type(agent, client, capsys):
    holder = Holder()
    attributes = [AttributeInfo(attr, "java.lang.Object") for attr in ("Value", "Big", "Ratio", "Name", "Flag")]
    agent.register("app:type=Holder", holder, attributes=attributes)
    name = ObjectName.parse("app:type=Holder")
    assert [client.get_attribute(name, attr).type_name for attr in ("Value", "Big", "Ratio", "Name", "Flag")] == [
        "java.lang.Integer",
        "java.lang.Long",
        "java.lang.Double",
        "java.lang.String",
        "java.lang.Boolean",
    ]
    interp = CommandInterpreter(BeanCatalog(client), client)
    assert interp.execute(["Holder", "set", "Value", "7"]) == 0
    assert holder.Value == 7
    assert capsys.readouterr().out == "Value has been set to 7\n"


def test_connect_failure_raises_agent_connect_error():
    transport = BeanTransport(TransportConfig(host="127.0.0.1", port=_free_port(), connect_timeout=1.0))
    with pytest.raises(AgentConnectError):
        transport.connect()


def test_server_side_close_fires_disconnect_callbacks():
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    transport = BeanTransport(TransportConfig(host="127.0.0.1", port=listener.getsockname()[1]))
    fired = threading.Event()
    reasons = []

    def on_disconnect(reason):
        reasons.append(reason)
        fired.set()

    transport.register_on_disconnect(on_disconnect)
    transport.connect()
    conn, _ = listener.accept()
    conn.close()
    listener.close()
    assert fired.wait(timeout=2.0)
    assert transport.state == "disconnected"
    with pytest.raises(ConnectionLostError):
        transport.bean_count()
    transport.close()
    assert len(reasons) == 1


def test_cli_one_shot_command(agent, clean_env, capsys):
    argv = ["--host", "127.0.0.1", "--port", str(agent.port), "Cache", "get", "MaxSize"]
    assert main(argv) == 0
    assert capsys.readouterr().out == "100\n"


def test_cli_one_shot_failure_code(agent, clean_env, capsys):
    argv = ["--host", "127.0.0.1", "--port", str(agent.port), "Cache", "get", "Missing"]
    assert main(argv) == 4
    assert "invalid attribute Missing" in capsys.readouterr().err


def test_cli_port_from_properties_file(agent, clean_env, tmp_path, capsys):
    (tmp_path / "beanctl.properties").write_text(f"host=127.0.0.1\nport={agent.port}\n", encoding="utf-8")
    assert main(["?"]) == 0
    assert capsys.readouterr().out == "Cache\nScheduler\nMemory\n"


def test_cli_missing_port_is_configuration_error(clean_env, capsys):
    assert main([]) == 2
    assert "property port not found" in capsys.readouterr().err


def test_cli_unreachable_agent(clean_env, capsys):
    assert main(["--host", "127.0.0.1", "--port", str(_free_port()), "?"]) == 1
    assert "Cannot connect to 127.0.0.1:" in capsys.readouterr().err
