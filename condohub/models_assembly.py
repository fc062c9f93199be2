from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Assembly(Base):
    __tablename__ = "assemblies"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), default="ordinary", nullable=False)  # ordinary, extraordinary
    status = Column(String(20), default="scheduled", nullable=False)  # scheduled, in_progress, closed, canceled
    scheduled_date = Column(DateTime, nullable=False)
    location = Column(String(255), nullable=True)
    quorum_percentage = Column(Numeric(5, 2), default=50, nullable=False)
    convocation_sent_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    topics = relationship("AssemblyVoteTopic", back_populates="assembly", order_by="AssemblyVoteTopic.order_index")
    attendees = relationship("AssemblyAttendee", back_populates="assembly")


class AssemblyAttendee(Base):
    __tablename__ = "assembly_attendees"
    __table_args__ = (
        UniqueConstraint("assembly_id", "fraction_id", name="uq_attendee_fraction"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    attendance_type = Column(String(20), default="present", nullable=False)  # present, represented
    representative_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    assembly = relationship("Assembly", back_populates="attendees")


class AssemblyVoteTopic(Base):
    __tablename__ = "assembly_vote_topics"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    options = Column(JSON, nullable=False)  # ["In favour", "Against", "Abstention"]
    order_index = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    assembly = relationship("Assembly", back_populates="topics")


class AssemblyVote(Base):
    __tablename__ = "assembly_votes"
    __table_args__ = (
        UniqueConstraint("topic_id", "fraction_id", name="uq_vote_topic_fraction"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("assembly_vote_topics.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    vote_option = Column(String(100), nullable=False)
    weighted_value = Column(Numeric(10, 4), default=0, nullable=False)  # Fraction permillage at vote time
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AssemblyAgendaPoint(Base):
    __tablename__ = "assembly_agenda_points"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=False, index=True)
    vote_topic_id = Column(Integer, ForeignKey("assembly_vote_topics.id"), nullable=True)
    order_index = Column(Integer, default=0, nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AssemblyAgendaPointVoteTopic(Base):
    __tablename__ = "assembly_agenda_point_vote_topics"
    __table_args__ = (
        UniqueConstraint("agenda_point_id", "vote_topic_id", name="uq_agenda_topic"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    agenda_point_id = Column(Integer, ForeignKey("assembly_agenda_points.id"), nullable=False, index=True)
    vote_topic_id = Column(Integer, ForeignKey("assembly_vote_topics.id"), nullable=False)


class MinutesRevision(Base):
    """Comment left by a fraction while reviewing assembly minutes"""

    __tablename__ = "minutes_revisions"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    assembly_id = Column(Integer, ForeignKey("assemblies.id"), nullable=False, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    comment = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class VoteOption(Base):
    __tablename__ = "vote_options"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    option_label = Column(String(100), nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class StandaloneVote(Base):
    __tablename__ = "standalone_votes"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = Column(Integer, primary_key=True, index=True)
    condominium_id = Column(Integer, ForeignKey("condominiums.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    allowed_options = Column(JSON, nullable=True)  # vote_options ids; NULL = all active options
    status = Column(String(20), default="draft", nullable=False)  # draft, open, closed
    voting_started_at = Column(DateTime, nullable=True)
    voting_ended_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class StandaloneVoteResponse(Base):
    __tablename__ = "standalone_vote_responses"
    __table_args__ = (
        UniqueConstraint("standalone_vote_id", "fraction_id", name="uq_response_fraction"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)
    standalone_vote_id = Column(Integer, ForeignKey("standalone_votes.id"), nullable=False, index=True)
    fraction_id = Column(Integer, ForeignKey("fractions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    vote_option_id = Column(Integer, ForeignKey("vote_options.id"), nullable=False)
    weighted_value = Column(Numeric(10, 4), default=0, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
