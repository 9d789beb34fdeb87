from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"
    
    id = Column(Integer, primary_key=True, index=True)
    # Owned by the external user service, not interpreted here
    user_id = Column(Integer, unique=True, nullable=True)
    
    # Personal information
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    
    # Professional information
    specialization = Column(String(100), nullable=True)
    certifications = Column(JSON, nullable=False, default=list)
    
    # Availability
    is_available = Column(Boolean, nullable=False, default=True)
    
    # Audit
    created_by_id = Column(Integer, nullable=True)
    updated_by_id = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    schedules = relationship(
        "ScheduleEntry",
        back_populates="doctor",
        order_by="ScheduleEntry.date",
    )
    
    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
    
    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.first_name} {self.last_name}', specialization='{self.specialization}')>"
