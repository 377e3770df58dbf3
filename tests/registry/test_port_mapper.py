"""Tests for the PortMapper registry API."""

from __future__ import annotations

import json
import logging
import os
from unittest.mock import patch

import pytest

from portmapper import (
    DecodeError,
    InvalidNameError,
    InvalidPortError,
    InvalidRecordError,
    MemoryGateway,
    PortMapper,
    PortMapperConfig,
    RetriesExhaustedError,
    ServiceRecord,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
)

ROOT = "/opsee.co/portmapper"


def _mapper(
    gateway: MemoryGateway,
    *,
    max_retries: int = 11,
) -> tuple[PortMapper, list[float]]:
    sleeps: list[float] = []
    config = PortMapperConfig(
        endpoints=("http://etcd:2379", ),
        backend="memory",
        registry_path=ROOT,
        request_timeout=5.0,
        max_retries=max_retries,
        origin_env_var="HOSTNAME",
    )
    return PortMapper(config, gateway=gateway, sleep=sleeps.append), sleeps


class TestRegister:
    """Tests for PortMapper.register."""

    def test_writes_record_at_composite_key(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with patch.dict(os.environ, {"HOSTNAME": "web-7f9c"}, clear=True):
            record = mapper.register("web", 8080)

        assert record == ServiceRecord(name="web", port=8080, origin="web-7f9c")
        stored = gateway.snapshot()
        assert list(stored) == [f"{ROOT}/web:8080"]
        assert json.loads(stored[f"{ROOT}/web:8080"]) == {
            "name": "web",
            "port": 8080,
            "hostname": "web-7f9c",
        }
        assert gateway.calls == [("set", f"{ROOT}/web:8080", 5.0)]

    def test_absent_hostname_is_omitted(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with patch.dict(os.environ, {}, clear=True):
            record = mapper.register("api", 9000)

        assert record.origin is None
        assert json.loads(gateway.snapshot()[f"{ROOT}/api:9000"]) == {
            "name": "api",
            "port": 9000,
        }

    def test_reregistering_overwrites(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with patch.dict(os.environ, {"HOSTNAME": "old"}, clear=True):
            mapper.register("web", 8080)
        with patch.dict(os.environ, {"HOSTNAME": "new"}, clear=True):
            mapper.register("web", 8080)

        services = mapper.list_services()
        assert len(services) == 1
        assert services[0].origin == "new"

    @pytest.mark.parametrize(
        ("name", "port", "error"),
        [
            ("", 8080, InvalidNameError),
            ("web", 0, InvalidPortError),
            ("web", 65536, InvalidPortError),
            ("web", -1, InvalidPortError),
        ],
    )
    def test_invalid_records_never_reach_the_store(
        self,
        name: str,
        port: int,
        error: type[InvalidRecordError],
    ) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with pytest.raises(error):
            mapper.register(name, port)
        assert gateway.calls == []

    def test_non_integer_port_is_invalid(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with pytest.raises(InvalidRecordError):
            mapper.register("web", "http")  # type: ignore[arg-type]
        assert gateway.calls == []

    @pytest.mark.parametrize("port", [True, "8080", 8080.0])
    def test_coercible_port_is_invalid(self, port: object) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with pytest.raises(InvalidRecordError):
            mapper.register("web", port)  # type: ignore[arg-type]
        assert gateway.calls == []

    @pytest.mark.parametrize("port", [1, 65535])
    def test_boundary_ports_are_accepted(self, port: int) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        mapper.register("edge", port)
        assert f"{ROOT}/edge:{port}" in gateway.snapshot()

    def test_succeeds_after_k_timeouts(self) -> None:
        gateway = MemoryGateway()
        k = 3
        gateway.inject_failures(
            "set", *[StoreTimeoutError("deadline") for _ in range(k)])
        mapper, sleeps = _mapper(gateway)

        mapper.register("web", 8080)

        assert gateway.count("set") == k + 1
        assert len(sleeps) == k
        assert all(a <= b for a, b in zip(sleeps, sleeps[1:]))
        assert f"{ROOT}/web:8080" in gateway.snapshot()

    def test_always_timing_out_exhausts_retries(self) -> None:
        gateway = MemoryGateway()
        gateway.inject_failures(
            "set", *[StoreTimeoutError("deadline") for _ in range(20)])
        mapper, _ = _mapper(gateway, max_retries=11)

        with pytest.raises(RetriesExhaustedError) as excinfo:
            mapper.register("web", 8080)

        assert excinfo.value.attempts == 11
        assert gateway.count("set") == 11
        assert gateway.snapshot() == {}

    def test_non_timeout_error_fails_fast(self) -> None:
        gateway = MemoryGateway()
        gateway.inject_failures("set", StoreConnectionError("refused"))
        mapper, sleeps = _mapper(gateway)

        with pytest.raises(StoreConnectionError):
            mapper.register("web", 8080)

        assert gateway.count("set") == 1
        assert sleeps == []


class TestUnregister:
    """Tests for PortMapper.unregister."""

    def test_removes_entry(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        mapper.register("web", 8080)
        mapper.register("web", 8081)

        mapper.unregister("web", 8080)

        assert list(gateway.snapshot()) == [f"{ROOT}/web:8081"]

    def test_absent_key_is_success(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        mapper.unregister("web", 8080)

        assert gateway.count("delete") == 1

    def test_invalid_record_is_rejected(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with pytest.raises(InvalidPortError):
            mapper.unregister("web", 70000)
        assert gateway.calls == []

    def test_store_errors_propagate(self) -> None:
        gateway = MemoryGateway()
        gateway.inject_failures("delete", StoreError("permission denied"))
        mapper, _ = _mapper(gateway)

        with pytest.raises(StoreError):
            mapper.unregister("web", 8080)
        assert gateway.count("delete") == 1

    def test_retries_timeouts(self) -> None:
        gateway = MemoryGateway({f"{ROOT}/web:8080": b"{}"})
        gateway.inject_failures("delete", StoreTimeoutError("deadline"))
        mapper, sleeps = _mapper(gateway)

        mapper.unregister("web", 8080)

        assert gateway.count("delete") == 2
        assert len(sleeps) == 1
        assert gateway.snapshot() == {}


class TestListServices:
    """Tests for PortMapper.list_services."""

    def test_returns_every_registered_service(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        for name, port in [("web", 8080), ("web", 8081), ("api", 9000)]:
            mapper.register(name, port)

        services = mapper.list_services()

        assert [(s.name, s.port) for s in services] == [
            ("api", 9000),
            ("web", 8080),
            ("web", 8081),
        ]

    def test_filters_by_name(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        for name, port in [("web", 8080), ("web", 8081), ("api", 9000)]:
            mapper.register(name, port)

        assert [s.port for s in mapper.list_services("web")] == [8080, 8081]

    def test_empty_registry(self) -> None:
        mapper, _ = _mapper(MemoryGateway())
        assert mapper.list_services() == []

    def test_decode_failure_aborts_listing(self) -> None:
        gateway = MemoryGateway({
            f"{ROOT}/api:9000": b'{"name":"api","port":9000}',
            f"{ROOT}/web:8080": b"garbage",
        })
        mapper, _ = _mapper(gateway)

        with pytest.raises(DecodeError) as excinfo:
            mapper.list_services()
        assert excinfo.value.key == f"{ROOT}/web:8080"
        assert gateway.count("get_prefix") == 1

    def test_exhaustion_is_an_error_not_an_empty_list(self) -> None:
        gateway = MemoryGateway({f"{ROOT}/api:9000": b"{}"})
        gateway.inject_failures(
            "get_prefix", *[StoreTimeoutError("deadline") for _ in range(3)])
        mapper, _ = _mapper(gateway, max_retries=3)

        with pytest.raises(RetriesExhaustedError):
            mapper.list_services()
        assert gateway.count("get_prefix") == 3

    def test_retry_refetches_full_prefix(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        mapper.register("web", 8080)
        gateway.inject_failures("get_prefix", StoreTimeoutError("deadline"))

        services = mapper.list_services()

        assert [(s.name, s.port) for s in services] == [("web", 8080)]
        assert gateway.count("get_prefix") == 2


class TestGetService:
    """Tests for PortMapper.get_service."""

    def test_returns_stored_record(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        with patch.dict(os.environ, {"HOSTNAME": "host-1"}, clear=True):
            mapper.register("web", 8080)

        record = mapper.get_service("web", 8080)

        assert record == ServiceRecord(name="web", port=8080, origin="host-1")

    def test_missing_record_is_none(self) -> None:
        mapper, _ = _mapper(MemoryGateway())
        assert mapper.get_service("web", 8080) is None


class TestRegistration:
    """Tests for the registration context manager."""

    def test_registers_for_the_block(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with mapper.registration("web", 8080) as record:
            assert record.port == 8080
            assert f"{ROOT}/web:8080" in gateway.snapshot()

        assert gateway.snapshot() == {}

    def test_unregisters_when_block_raises(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)

        with pytest.raises(RuntimeError):
            with mapper.registration("web", 8080):
                raise RuntimeError("boom")

        assert gateway.snapshot() == {}

    def test_block_error_survives_failed_unregister(
            self, caplog: pytest.LogCaptureFixture) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        gateway.inject_failures("delete", StoreConnectionError("refused"))

        with caplog.at_level(logging.ERROR, logger="portmapper.registry"):
            with pytest.raises(RuntimeError, match="boom"):
                with mapper.registration("web", 8080):
                    raise RuntimeError("boom")

        assert any("Failed to unregister service web:8080" in r.getMessage()
                   for r in caplog.records)
        assert f"{ROOT}/web:8080" in gateway.snapshot()

    def test_failed_unregister_after_clean_block_raises(self) -> None:
        gateway = MemoryGateway()
        mapper, _ = _mapper(gateway)
        gateway.inject_failures("delete", StoreConnectionError("refused"))

        with pytest.raises(StoreConnectionError):
            with mapper.registration("web", 8080):
                pass


def test_is_healthy_delegates_to_gateway() -> None:
    gateway = MemoryGateway(healthy=False)
    mapper, _ = _mapper(gateway)
    assert mapper.is_healthy() is False


def test_gateway_is_built_from_config() -> None:
    mapper = PortMapper(PortMapperConfig(backend="memory"))
    assert isinstance(mapper.gateway, MemoryGateway)
    assert mapper.gateway is mapper.gateway
