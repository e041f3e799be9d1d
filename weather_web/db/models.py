from datetime import datetime, timezone
from typing import List

from sqlalchemy import (
    String,
    Text,
    Index,
    ForeignKey,
    DateTime,
    Float,
    Integer,
    BigInteger,
    Boolean,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Sender(Base):
    """
    Represents a weather station that reports readings to the system.

    Attributes:
        id (int): The primary key of the sender.
        sender_id (str): The externally supplied, stable identifier of the
            station. Numeric identifiers are stored in their string form.
        name (str): The display name of the station.
        location (str, optional): A free-text location, e.g. "Roof north".
        description (str, optional): A free-text description.
        latitude (float, optional): Geo-coordinate of the station.
        longitude (float, optional): Geo-coordinate of the station.
        is_active (bool): False once the station has been deactivated.
        created_at (datetime): When the station was first registered.
        updated_at (datetime): When the station metadata last changed.
    """

    __tablename__ = "senders"

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    readings: Mapped[List["Reading"]] = relationship(
        back_populates="sender",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    alerts: Mapped[List["AlertRule"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    statistics: Mapped[List["Statistic"]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return (
            f"Sender(\n"
            f"  id={self.id!r},\n"
            f"  sender_id={self.sender_id!r},\n"
            f"  name={self.name!r},\n"
            f"  location={self.location!r},\n"
            f"  is_active={self.is_active!r}\n"
            f")"
        )


class Reading(Base):
    """
    Represents one timestamped set of measurements reported by a sender.

    Every channel is optional since a station may omit any of them.

    Attributes:
        id (int): The primary key of the reading.
        sender_id (str): The identifier of the reporting sender.
        temperature (float, optional): Temperature in degrees Celsius.
        humidity (float, optional): Relative humidity in percent.
        pressure (float, optional): Air pressure in hPa. Legacy senders
            report this under other names (see services.normalize).
        light_level (float, optional): Ambient light level.
        battery_level (float, optional): Battery charge in percent.
        signal_strength (int, optional): Radio signal strength (RSSI).
        unix_timestamp (int): When the reading was taken, in seconds since
            the epoch. Not necessarily increasing per sender.
        received_at (datetime): When the server stored the reading.
        raw_data_json (str): The payload as it was received.
    """

    __tablename__ = "weather_data"

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[str] = mapped_column(
        ForeignKey("senders.sender_id", ondelete="CASCADE"), nullable=False
    )

    temperature: Mapped[float] = mapped_column(Float, nullable=True)
    humidity: Mapped[float] = mapped_column(Float, nullable=True)
    pressure: Mapped[float] = mapped_column(Float, nullable=True)
    light_level: Mapped[float] = mapped_column(Float, nullable=True)
    battery_level: Mapped[float] = mapped_column(Float, nullable=True)
    signal_strength: Mapped[int] = mapped_column(Integer, nullable=True)

    unix_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    raw_data_json: Mapped[str] = mapped_column(Text, nullable=True)

    sender: Mapped[Sender] = relationship(back_populates="readings")

    __table_args__ = (
        Index("idx_weather_sender_id", "sender_id"),
        Index("idx_weather_unix_timestamp", "unix_timestamp"),
        Index("idx_weather_sender_time", "sender_id", "unix_timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"Reading(\n"
            f"  id={self.id!r},\n"
            f"  sender_id={self.sender_id!r},\n"
            f"  temperature={self.temperature!r},\n"
            f"  humidity={self.humidity!r},\n"
            f"  pressure={self.pressure!r},\n"
            f"  battery_level={self.battery_level!r},\n"
            f"  unix_timestamp={self.unix_timestamp!r}\n"
            f")"
        )


class AlertRule(Base):
    """
    A threshold condition evaluated against every reading of a sender.

    Attributes:
        id (int): The primary key of the rule.
        sender_id (str): The sender the rule watches.
        alert_type (str): The watched channel, one of the values of
            services.conditions.AlertType.
        condition (str): The comparison, one of the values of
            services.conditions.AlertCondition.
        threshold_value (float): The value the channel is compared to.
        is_active (bool): Inactive rules are never evaluated.
        last_triggered (datetime, optional): When the rule last fired.
        notification_sent (bool): Whether a notification went out for the
            last firing.
    """

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[str] = mapped_column(
        ForeignKey("senders.sender_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    condition: Mapped[str] = mapped_column(String(20), nullable=False)
    threshold_value: Mapped[float] = mapped_column(Float, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    last_triggered: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notification_sent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"AlertRule(\n"
            f"  id={self.id!r},\n"
            f"  sender_id={self.sender_id!r},\n"
            f"  alert_type={self.alert_type!r},\n"
            f"  condition={self.condition!r},\n"
            f"  threshold_value={self.threshold_value!r}\n"
            f")"
        )


class Statistic(Base):
    __tablename__ = "weather_statistics"

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[str] = mapped_column(
        ForeignKey("senders.sender_id", ondelete="CASCADE"), nullable=False
    )
    stat_type: Mapped[str] = mapped_column(String(10), nullable=False)
    period_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    period_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    avg_temperature: Mapped[float] = mapped_column(Float, nullable=True)
    min_temperature: Mapped[float] = mapped_column(Float, nullable=True)
    max_temperature: Mapped[float] = mapped_column(Float, nullable=True)
    avg_humidity: Mapped[float] = mapped_column(Float, nullable=True)
    min_humidity: Mapped[float] = mapped_column(Float, nullable=True)
    max_humidity: Mapped[float] = mapped_column(Float, nullable=True)
    avg_pressure: Mapped[float] = mapped_column(Float, nullable=True)
    data_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("idx_stats_sender_period", "sender_id", "period_start"),
    )


class EventLog(Base):
    """
    An append-only operational event.

    `sender_id` is a plain column rather than a foreign key so that events
    about senders which failed to register can still be written.
    """

    __tablename__ = "system_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[str] = mapped_column(String, nullable=True, index=True)
    log_level: Mapped[str] = mapped_column(String(10), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("idx_logs_created_at", "created_at"),
        Index("idx_logs_level", "log_level"),
    )
