"""
Reservation model
"""

from sqlalchemy import Column, String, Enum, Numeric, Date, Index, text
import enum

from busseats.models.base import BaseModel


class ReservationStatus(str, enum.Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Reservation(BaseModel):
    """
    One passenger on one seat of one bus for one travel date
    """
    __tablename__ = "reservations"

    vehicle_id = Column(String(64), nullable=False, index=True)
    service_date = Column(Date, nullable=False)
    seat_id = Column(String(16), nullable=False)
    passenger_name = Column(String(255), nullable=False)
    passenger_phone = Column(String(20), nullable=False)
    boarding_point = Column(String(255))
    dropping_point = Column(String(255))
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(
            ReservationStatus,
            name="reservation_status",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        default=ReservationStatus.BOOKED,
        nullable=False,
        index=True
    )
    party_id = Column(String(128), index=True)
    operator_id = Column(String(128), nullable=False, index=True)
    # Denormalized at write time
    vehicle_name = Column(String(255))
    vehicle_type = Column(String(50))

    def __repr__(self):
        return (
            f"<Reservation(id={self.id}, vehicle={self.vehicle_id}, date={self.service_date}, "
            f"seat={self.seat_id}, status={self.status})>"
        )


Index(
    "ix_reservations_vehicle_date_status",
    Reservation.vehicle_id,
    Reservation.service_date,
    Reservation.status,
)

# At most one booked reservation per (vehicle, date, seat)
Index(
    "uq_reservations_booked_seat",
    Reservation.vehicle_id,
    Reservation.service_date,
    Reservation.seat_id,
    unique=True,
    postgresql_where=text("status = 'booked'"),
    sqlite_where=text("status = 'booked'"),
)
