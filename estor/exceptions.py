class StorageConfigurationError(ValueError):
    """Inconsistent build configuration (topology, periods, reserve products)."""


class StorageDataError(ValueError):
    """Missing or out-of-range resource data."""

    def __init__(self, resource, attribute, msg=None):
        self.resource = resource
        self.attribute = attribute
        if msg is None:
            msg = f"Storage resource {resource!r} is missing required attribute {attribute!r}"
        super().__init__(msg)
