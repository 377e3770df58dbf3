import portmapper


def test_public_api_exports_resolve() -> None:
    for name in portmapper.__all__:
        assert hasattr(portmapper, name), name


def test_error_hierarchy() -> None:
    assert issubclass(portmapper.RetriesExhaustedError,
                      portmapper.StoreTimeoutError)
    assert issubclass(portmapper.StoreTimeoutError, portmapper.StoreError)
    assert issubclass(portmapper.KeyNotFoundError, portmapper.StoreError)
    assert issubclass(portmapper.StoreConnectionError, portmapper.StoreError)
    for error in (
            portmapper.StoreError,
            portmapper.DecodeError,
            portmapper.InvalidRecordError,
            portmapper.ConfigurationError,
    ):
        assert issubclass(error, portmapper.PortMapperError)
