from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from src.database import Base

# ================================
# Fleet
# ================================
class Bus(Base):
    __tablename__ = "buses"

    id = Column(String(36), primary_key=True, index=True)
    bus_number = Column(String(50), unique=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(String(30), nullable=False, default="active")
    daily_rate = Column(Numeric(10, 2))
    hourly_rate = Column(Numeric(10, 2))
    per_kilometer_rate = Column(Numeric(10, 2))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    bookings = relationship("Booking", back_populates="bus")
    hirings = relationship("Hiring", back_populates="bus")

# ================================
# Routes & Pricing Factors
# ================================
class Route(Base):
    __tablename__ = "routes"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    base_fare = Column(Numeric(10, 2), nullable=False)
    estimated_duration_minutes = Column(Integer, default=0)
    peak_time_multiplier = Column(Numeric(6, 3), default=1)
    weekend_multiplier = Column(Numeric(6, 3), default=1)
    holiday_multiplier = Column(Numeric(6, 3), default=1)
    seasonal_multiplier = Column(Numeric(6, 3), default=1)
    child_discount = Column(Numeric(5, 4), default=0)
    senior_discount = Column(Numeric(5, 4), default=0)
    stop_points = Column(JSON, default=dict)  # stop name -> fare override
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    bookings = relationship("Booking", back_populates="route")

# ================================
# Seat Bookings
# ================================
class Booking(Base):
    __tablename__ = "seat_bookings"

    id = Column(String(36), primary_key=True, index=True)
    reference = Column(String(20), unique=True, nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    bus_id = Column(String(36), ForeignKey("buses.id"), nullable=False, index=True)
    route_id = Column(String(36), ForeignKey("routes.id"), nullable=False)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(30), nullable=False, index=True)
    payment_status = Column(String(30), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    departure_at = Column(DateTime, nullable=False)
    return_at = Column(DateTime)
    booking_type = Column(String(20), nullable=False)
    is_holiday = Column(Boolean, default=False)
    is_seasonal = Column(Boolean, default=False)
    promo_code = Column(String(50))
    special_requests = Column(Text)
    passengers = Column(JSON, nullable=False)
    fare_breakdown = Column(JSON)
    status_history = Column(JSON, default=list)
    cancellation = Column(JSON)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    # Relationships
    bus = relationship("Bus", back_populates="bookings")
    route = relationship("Route", back_populates="bookings")
    payments = relationship("PaymentEntry", back_populates="booking", order_by="PaymentEntry.created_at")

# ================================
# Bus Hirings
# ================================
class Hiring(Base):
    __tablename__ = "bus_hirings"

    id = Column(String(36), primary_key=True, index=True)
    reference = Column(String(20), unique=True, nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    bus_id = Column(String(36), ForeignKey("buses.id"), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(30), nullable=False, index=True)
    payment_status = Column(String(30), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    passenger_count = Column(Integer, nullable=False)
    rate_basis = Column(String(30), nullable=False)
    base_rate = Column(Numeric(10, 2), nullable=False)
    estimated_distance_km = Column(Numeric(10, 2), default=0)
    driver_allowance = Column(Numeric(10, 2), default=0)
    overtime_rate = Column(Numeric(10, 2), default=0)
    is_round_trip = Column(Boolean, default=False)
    deposit = Column(Numeric(12, 2), default=0)
    cancellation_policy = Column(String(30), nullable=False, default="Standard")
    purpose = Column(Text)
    start_location = Column(String(255))
    end_location = Column(String(255))
    additional_services = Column(JSON, default=list)
    additional_charges = Column(JSON, default=list)
    cost_breakdown = Column(JSON)
    status_history = Column(JSON, default=list)
    cancellation = Column(JSON)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    # Relationships
    bus = relationship("Bus", back_populates="hirings")
    payments = relationship("PaymentEntry", back_populates="hiring", order_by="PaymentEntry.created_at")

# ================================
# Payment Ledger
# ================================
class PaymentEntry(Base):
    __tablename__ = "payment_entries"

    id = Column(String(36), primary_key=True, index=True)
    booking_id = Column(String(36), ForeignKey("seat_bookings.id"), index=True)
    hiring_id = Column(String(36), ForeignKey("bus_hirings.id"), index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Negative for refunds
    method = Column(String(30), nullable=False)
    transaction_id = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    flagged = Column(Boolean, default=False)
    created_at = Column(DateTime, nullable=False)

    # Relationships
    booking = relationship("Booking", back_populates="payments")
    hiring = relationship("Hiring", back_populates="payments")
