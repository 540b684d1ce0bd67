from enum import Enum

from sqlalchemy import Column, Integer, String, ForeignKey, Text
from sqlalchemy.orm import relationship
from database import Base


class CommentStatus(str, Enum):
    UNREVIEWED = "unreviewed"
    PUBLISHED = "published"
    BLOCKED = "blocked"


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    status = Column(String, default=CommentStatus.UNREVIEWED.value)   # unreviewed/published/blocked
    translated_text = Column(Text, nullable=True)

    analysis = relationship("Analysis", back_populates="comment", uselist=False)
    response = relationship("CommentResponse", back_populates="comment", uselist=False)


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=False)
    detected_language = Column(String, nullable=True)   # ISO 639-1
    topic = Column(String, nullable=True)
    sentiment = Column(String, nullable=True)
    urgency = Column(String, nullable=True)
    requires_response = Column(String, nullable=True)
    inappropriate_content = Column(String, nullable=True)
    explanation_json = Column(Text, nullable=True)      # объяснение модели, в JSON

    comment = relationship("Comment", back_populates="analysis")


class CommentResponse(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id"), nullable=False)
    text = Column(Text, nullable=False)

    comment = relationship("Comment", back_populates="response")
