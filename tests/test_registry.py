"""
容器注册表测试
"""

import asyncio
import json
from datetime import UTC, datetime

import pytest

from core.container import Container
from core.controller import ContainerController
from core.registry import ContainerRegistry, RegistryError


def make_container(cid: str = "abc123", ctype: str = "docker") -> Container:
    container = Container(id=cid, type=ctype, path=f"/{ctype}/{cid}")
    container.cgroup_current.cpuset.cpus = "0-1"
    return container


@pytest.fixture
def registry_path(tmp_path):
    return tmp_path / "registered"


@pytest.fixture
def registry(registry_path):
    return ContainerRegistry(registry_path)


def test_load_without_file(registry, registry_path):
    assert asyncio.run(registry.load()) == 0
    assert registry.loaded
    assert not registry_path.exists()


def test_add_persists_document(registry, registry_path):
    async def scenario():
        await registry.load()
        assert await registry.add(make_container())

    asyncio.run(scenario())

    text = registry_path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert '\n\t"abc123": {' in text

    document = json.loads(text)
    assert list(document) == ["abc123"]
    entry = document["abc123"]
    assert entry["id"] == "abc123"
    assert entry["type"] == "docker"
    assert entry["path"] == "/docker/abc123"
    assert entry["cgroup_cur"]["cpuset"]["cpus"] == "0-1"
    assert "cgroup_req" in entry
    assert "cAdvisor" in entry
    assert "Timestamp" in entry


def test_duplicate_add(registry):
    async def scenario():
        assert await registry.add(make_container())
        assert not await registry.add(make_container())
        return await registry.all()

    assert list(asyncio.run(scenario())) == ["abc123"]


def test_remove(registry, registry_path):
    async def scenario():
        await registry.add(make_container())
        await registry.add(make_container("web", "lxc"))
        assert await registry.remove("abc123")
        assert not await registry.remove("abc123")
        return await registry.is_registered("abc123"), await registry.is_registered("web")

    assert asyncio.run(scenario()) == (False, True)
    assert list(json.loads(registry_path.read_text(encoding="utf-8"))) == ["web"]


def test_reload_round_trip(registry_path):
    async def scenario():
        first = ContainerRegistry(registry_path)
        await first.add(make_container())
        await first.add(make_container("web", "lxc"))

        second = ContainerRegistry(registry_path)
        assert await second.load() == 2
        return await second.all()

    containers = asyncio.run(scenario())
    assert list(containers) == ["abc123", "web"]
    assert containers["abc123"] == make_container()
    assert containers["web"].telemetry_name == "/lxc/web"


def test_load_null_document(registry, registry_path):
    registry_path.write_text("null\n", encoding="utf-8")
    assert asyncio.run(registry.load()) == 0


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"abc123": {"type": "docker"}}'])
def test_load_invalid_document(registry, registry_path, content):
    registry_path.write_text(content, encoding="utf-8")
    with pytest.raises(RegistryError):
        asyncio.run(registry.load())


def test_reads_return_copies(registry):
    async def scenario():
        await registry.add(make_container())
        container = await registry.get("abc123")
        container.cgroup_current.cpuset.cpus = "7"
        container.cpu_usage_long = 99.0
        return await registry.get("abc123")

    container = asyncio.run(scenario())
    assert container.cgroup_current.cpuset.cpus == "0-1"
    assert container.cpu_usage_long == 0.0


def test_get_unknown(registry):
    assert asyncio.run(registry.get("nope")) is None


def test_update_usage_is_memory_only(registry, registry_path):
    timestamp = datetime(2024, 1, 1, tzinfo=UTC)

    async def scenario():
        await registry.add(make_container())
        assert await registry.update_usage("abc123", 40.0, 60.0, timestamp)
        assert not await registry.update_usage("nope", 1.0, 1.0, timestamp)
        return await registry.get("abc123")

    container = asyncio.run(scenario())
    assert container.cpu_usage_long == 40.0
    assert container.cpu_usage_short == 60.0
    assert container.timestamp == timestamp

    entry = json.loads(registry_path.read_text(encoding="utf-8"))["abc123"]
    assert entry["cpu_usage_long"] == 0.0
    assert entry["Timestamp"] is None


def test_store_writes_usage(registry, registry_path):
    async def scenario():
        await registry.add(make_container())
        await registry.update_usage("abc123", 40.0, 60.0, datetime(2024, 1, 1, tzinfo=UTC))
        await registry.store()

    asyncio.run(scenario())
    assert json.loads(registry_path.read_text(encoding="utf-8"))["abc123"]["cpu_usage_long"] == 40.0


def test_failed_write_rolls_back(tmp_path):
    registry = ContainerRegistry(tmp_path / "missing" / "registered")

    async def scenario():
        with pytest.raises(RegistryError):
            await registry.add(make_container())
        return await registry.is_registered("abc123")

    assert asyncio.run(scenario()) is False


def test_failed_remove_rolls_back(registry_path):
    registry = ContainerRegistry(registry_path)

    async def scenario():
        await registry.add(make_container())
        registry.path = registry_path.parent / "missing" / "registered"
        with pytest.raises(RegistryError):
            await registry.remove("abc123")
        return await registry.is_registered("abc123")

    assert asyncio.run(scenario()) is True


def test_concurrent_adds(registry, registry_path):
    ids = [f"c{i}" for i in range(20)]

    async def scenario():
        results = await asyncio.gather(*(registry.add(make_container(cid)) for cid in ids))
        assert all(results)
        return await registry.all()

    assert sorted(asyncio.run(scenario())) == sorted(ids)
    assert sorted(json.loads(registry_path.read_text(encoding="utf-8"))) == sorted(ids)


def test_interleaved_register_and_unregister(registry, registry_path, cgroup_manager, telemetry, make_info):
    telemetry.containers["/docker/abc123"] = make_info("/docker/abc123", "0-1", [(0, 0)])
    controller = ContainerController(registry, cgroup_manager, telemetry)

    async def scenario():
        calls = []
        for _ in range(10):
            calls.append(controller.register("abc123"))
            calls.append(controller.unregister("abc123"))
        results = await asyncio.gather(*calls)
        assert all(result.result for result in results)
        return await registry.all()

    containers = asyncio.run(scenario())
    document = json.loads(registry_path.read_text(encoding="utf-8"))
    assert sorted(containers) == sorted(document)
    assert set(containers) <= {"abc123"}
