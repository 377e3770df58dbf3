from __future__ import annotations

from ..config import PortMapperConfig, load_config
from .impl.consul_gateway import ConsulGateway
from .impl.etcd_gateway import EtcdGateway
from .impl.memory_gateway import MemoryGateway
from .protocol import StoreGatewayProtocol


def build_gateway(
    config: PortMapperConfig | None = None,
) -> StoreGatewayProtocol:
    """Build the gateway selected by ``config.backend``."""
    cfg = config or load_config()
    if cfg.backend == "consul":
        return ConsulGateway(cfg)
    if cfg.backend == "memory":
        return MemoryGateway()
    return EtcdGateway(cfg)
