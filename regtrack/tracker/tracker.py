"""
SQLAlchemy models and CRUD operations for tracked registrations.

Stores each registration from intake through its approval decision,
together with the category and panchayath it references and an optional
verification stamp.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    create_engine,
    or_,
    select,
    update as sql_update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, relationship, sessionmaker

from regtrack.errors import ConflictError, RegistrationNotFound, StoreError
from regtrack.tracker.lifecycle import Clock, SystemClock
from regtrack.tracker.models import (
    PATCHABLE_FIELDS,
    Category,
    Panchayath,
    Registration,
    RegistrationStatus,
    StatusPatch,
    Verification,
)


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Store datetimes as UTC and hand them back timezone-aware.

    SQLite drops tzinfo, so naive values read back are treated as UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), unique=True, nullable=False)


class PanchayathRow(Base):
    __tablename__ = "panchayaths"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False, index=True)
    district = Column(String(128), nullable=False, default="")


class RegistrationRow(Base):
    """A single registration as persisted."""

    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # --- identification ---
    customer_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(256), nullable=False)
    mobile_number = Column(String(32), nullable=False)
    address = Column(Text, nullable=False, default="")
    ward = Column(String(64), nullable=False, default="")
    agent_pro = Column(String(128), nullable=True)
    preference = Column(String(256), nullable=True)
    # --- references ---
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    panchayath_id = Column(Integer, ForeignKey("panchayaths.id"), nullable=True)
    # --- decision ---
    status = Column(
        Enum(RegistrationStatus),
        default=RegistrationStatus.PENDING,
        nullable=False,
        index=True,
    )
    fee_paid = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    approved_date = Column(UTCDateTime, nullable=True)
    approved_by = Column(String(128), nullable=True)
    # --- dates ---
    created_at = Column(UTCDateTime, nullable=False, index=True)
    updated_at = Column(UTCDateTime, nullable=False)

    category = relationship("CategoryRow", lazy="joined")
    panchayath = relationship("PanchayathRow", lazy="joined")
    verification = relationship(
        "VerificationRow",
        uselist=False,
        lazy="joined",
        back_populates="registration",
    )

    def __repr__(self) -> str:
        return (
            f"<RegistrationRow(id={self.id}, customer_id='{self.customer_id}', "
            f"status={self.status.value})>"
        )

    def to_domain(self) -> Registration:
        verification = None
        if self.verification is not None:
            verification = Verification(
                verified_by=self.verification.verified_by,
                verified_at=self.verification.verified_at,
            )
        return Registration(
            id=self.id,
            customer_id=self.customer_id,
            name=self.name,
            mobile_number=self.mobile_number,
            address=self.address or "",
            ward=self.ward or "",
            created_at=self.created_at,
            status=self.status,
            fee_paid=Decimal(self.fee_paid or 0),
            updated_at=self.updated_at,
            approved_date=self.approved_date,
            approved_by=self.approved_by,
            category=Category(self.category.name) if self.category else None,
            panchayath=(
                Panchayath(self.panchayath.name, self.panchayath.district or "")
                if self.panchayath else None
            ),
            agent_pro=self.agent_pro,
            preference=self.preference,
            verification=verification,
        )


class VerificationRow(Base):
    __tablename__ = "registration_verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(
        String(36), ForeignKey("registrations.id"), unique=True, nullable=False
    )
    verified_by = Column(String(128), nullable=False)
    verified_at = Column(UTCDateTime, nullable=False)

    registration = relationship("RegistrationRow", back_populates="verification")


class TrackerDB:
    """
    Registration store backed by a SQL database.

    Usage:
        db = TrackerDB("sqlite:///registrations.db")
        reg = db.create_registration(customer_id="C-1001", name="Asha", ...)
        pending = db.list_pending()
        db.update(reg.id, StatusPatch(RegistrationStatus.REJECTED),
                  expected_status=RegistrationStatus.PENDING)
    """

    def __init__(
        self,
        db_url: str = "sqlite:///registrations.db",
        clock: Optional[Clock] = None,
    ) -> None:
        self.engine = create_engine(db_url, echo=False)
        Base.metadata.create_all(self.engine)
        self.SessionFactory = sessionmaker(bind=self.engine)
        self.clock = clock or SystemClock()

    def _session(self) -> Session:
        return self.SessionFactory()

    # ---- Create ----

    def create_registration(
        self,
        customer_id: str,
        name: str,
        mobile_number: str,
        address: str = "",
        ward: str = "",
        category: Optional[str] = None,
        panchayath: Optional[str] = None,
        district: str = "",
        created_at: Optional[datetime] = None,
        **kwargs,
    ) -> Registration:
        now = self.clock.now()
        created = created_at or now
        with self._session() as session:
            row = RegistrationRow(
                customer_id=customer_id,
                name=name,
                mobile_number=mobile_number,
                address=address,
                ward=ward,
                created_at=created,
                updated_at=kwargs.pop("updated_at", None) or created,
                **kwargs,
            )
            if category:
                row.category = self._get_or_create_category(session, category)
            if panchayath:
                row.panchayath = self._get_or_create_panchayath(session, panchayath, district)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.to_domain()

    def add_verification(
        self,
        registration_id: str,
        verified_by: str,
        verified_at: Optional[datetime] = None,
    ) -> Registration:
        """Attach the (single) verification stamp to an approved registration."""
        with self._session() as session:
            row = session.get(RegistrationRow, registration_id)
            if row is None:
                raise RegistrationNotFound(registration_id)
            if row.verification is not None:
                raise ConflictError(registration_id, "unverified", "verified")
            row.verification = VerificationRow(
                verified_by=verified_by,
                verified_at=verified_at or self.clock.now(),
            )
            session.commit()
            session.refresh(row)
            return row.to_domain()

    # ---- Read ----

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        with self._session() as session:
            row = session.get(RegistrationRow, registration_id)
            return row.to_domain() if row else None

    def get_by_customer_id(self, customer_id: str) -> Optional[Registration]:
        with self._session() as session:
            row = session.scalars(
                select(RegistrationRow).where(RegistrationRow.customer_id == customer_id)
            ).first()
            return row.to_domain() if row else None

    def list_registrations(
        self,
        status: Optional[RegistrationStatus] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
        search: Optional[str] = None,
        newest_first: bool = False,
        limit: int = 10000,
        offset: int = 0,
    ) -> list[Registration]:
        """
        Registrations ordered by applied date, oldest first unless ``newest_first``.

        ``search`` matches a case-insensitive substring of the name, mobile
        number or customer ID.
        """
        with self._session() as session:
            q = select(RegistrationRow)
            if status:
                q = q.where(RegistrationRow.status == status)
            if created_from:
                q = q.where(RegistrationRow.created_at >= _day_start(created_from))
            if created_to:
                q = q.where(RegistrationRow.created_at < _day_start(created_to + timedelta(days=1)))
            if search:
                pattern = f"%{search}%"
                q = q.where(or_(
                    RegistrationRow.name.ilike(pattern),
                    RegistrationRow.mobile_number.ilike(pattern),
                    RegistrationRow.customer_id.ilike(pattern),
                ))
            order = RegistrationRow.created_at.desc() if newest_first else RegistrationRow.created_at.asc()
            q = q.order_by(order).offset(offset).limit(limit)
            return [row.to_domain() for row in session.scalars(q).unique()]

    def list_pending(self) -> list[Registration]:
        return self.list_registrations(status=RegistrationStatus.PENDING)

    def list_verified(
        self,
        verified_from: Optional[date] = None,
        verified_to: Optional[date] = None,
    ) -> list[Registration]:
        """Approved registrations that carry a verification stamp, filtered by verification date."""
        with self._session() as session:
            q = (
                select(RegistrationRow)
                .join(VerificationRow)
                .where(RegistrationRow.status == RegistrationStatus.APPROVED)
            )
            if verified_from:
                q = q.where(VerificationRow.verified_at >= _day_start(verified_from))
            if verified_to:
                q = q.where(VerificationRow.verified_at < _day_start(verified_to + timedelta(days=1)))
            q = q.order_by(RegistrationRow.created_at.asc())
            return [row.to_domain() for row in session.scalars(q).unique()]

    # ---- Update ----

    def update(
        self,
        registration_id: str,
        patch: StatusPatch,
        expected_status: Optional[RegistrationStatus] = None,
    ) -> Registration:
        fields = {k: v for k, v in patch.as_fields().items() if k in PATCHABLE_FIELDS}
        fields.setdefault("updated_at", self.clock.now())
        try:
            with self._session() as session:
                stmt = sql_update(RegistrationRow).where(RegistrationRow.id == registration_id)
                if expected_status is not None:
                    stmt = stmt.where(RegistrationRow.status == expected_status)
                result = session.execute(stmt.values(**fields))
                if result.rowcount == 0:
                    session.rollback()
                    current = session.get(RegistrationRow, registration_id)
                    if current is None or expected_status is None:
                        raise RegistrationNotFound(registration_id)
                    raise ConflictError(
                        registration_id, expected_status.value, current.status.value
                    )
                session.commit()
                row = session.get(RegistrationRow, registration_id, populate_existing=True)
                return row.to_domain()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update registration {registration_id}: {exc}") from exc

    # ---- Helpers ----

    @staticmethod
    def _get_or_create_category(session: Session, name: str) -> CategoryRow:
        row = session.scalars(select(CategoryRow).where(CategoryRow.name == name)).first()
        if row is None:
            row = CategoryRow(name=name)
            session.add(row)
        return row

    @staticmethod
    def _get_or_create_panchayath(session: Session, name: str, district: str) -> PanchayathRow:
        row = session.scalars(
            select(PanchayathRow).where(
                PanchayathRow.name == name, PanchayathRow.district == district
            )
        ).first()
        if row is None:
            row = PanchayathRow(name=name, district=district)
            session.add(row)
        return row


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)
