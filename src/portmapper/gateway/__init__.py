from .factory import build_gateway
from .impl.consul_gateway import ConsulGateway
from .impl.etcd_gateway import EtcdGateway
from .impl.memory_gateway import MemoryGateway
from .protocol import BaseStoreGateway, KeyValue, StoreGatewayProtocol

__all__ = [
    # Protocol
    "BaseStoreGateway",
    "KeyValue",
    "StoreGatewayProtocol",
    # Implementation
    "ConsulGateway",
    "EtcdGateway",
    "MemoryGateway",
    "build_gateway",
]
