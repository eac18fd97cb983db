__all__ = (
    "SwcacheError",
    "ProvisioningFailure",
    "StorageFailure",
    "NetworkFailure",
    "InvalidStateError",
)


class SwcacheError(Exception): ...


class ProvisioningFailure(SwcacheError):
    """
    Installing a generation failed. The previously active generation keeps serving.
    """


class StorageFailure(SwcacheError): ...


class NetworkFailure(SwcacheError):
    """
    A live fetch did not produce a response at all (connection refused, DNS failure, ...).

    Request senders raise this so the strategies can take their fallback branch.
    """


class InvalidStateError(SwcacheError): ...
