class WeatherWebError(Exception):
    """Base class for all errors raised by the weather_web services."""


class ValidationError(WeatherWebError):
    """Missing or malformed input, rejected before anything is persisted."""


class NotFoundError(WeatherWebError):
    """An unknown sender, alert or absent data."""


class SenderAlreadyExists(WeatherWebError):
    pass


class StorageError(WeatherWebError):
    """Failure reported by the persistence layer."""
