class MapClusterError(Exception):
    """Base class for all errors raised by mapcluster."""


class ConfigError(MapClusterError, ValueError):
    """Invalid clustering / region configuration. Fatal at startup."""


class InvalidViewportError(MapClusterError, ValueError):
    """A viewport carried NaN or infinite fields."""


class UnknownClusterError(MapClusterError, KeyError):
    """A cluster id that the current index does not know about."""


class SnapshotError(MapClusterError):
    """A listings snapshot could not be read."""
