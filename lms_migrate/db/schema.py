"""
Table definitions for the course platform database.

Every table is described twice: once as SQLAlchemy Core ``Table`` metadata
(used to create missing tables and to build statements) and once as a
``TableSpec`` that tells the generic upsert routine which columns form the
conflict target and which defaults to apply to legacy rows.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()


def _timestamps() -> List[Column]:
    return [
        Column("createdAt", DateTime, nullable=False),
        Column("updatedAt", DateTime, nullable=False),
    ]


user = Table(
    "User",
    metadata,
    Column("id", String, primary_key=True),
    Column("fullName", String, nullable=False),
    Column("phoneNumber", String, nullable=False, unique=True),
    Column("parentPhoneNumber", String),
    Column("hashedPassword", String, nullable=False),
    Column("image", String),
    Column("role", String, nullable=False, default="USER"),
    Column("balance", Float, nullable=False, default=0),
    *_timestamps(),
)

course = Table(
    "Course",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("imageUrl", Text),
    Column("price", Float),
    Column("isPublished", Boolean, nullable=False, default=False),
    *_timestamps(),
)

attachment = Table(
    "Attachment",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("url", Text, nullable=False),
    Column("courseId", String, ForeignKey("Course.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

chapter = Table(
    "Chapter",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("description", Text),
    Column("videoUrl", Text),
    Column("videoType", String, nullable=False, default="UPLOAD"),
    Column("youtubeVideoId", String),
    Column("documentUrl", Text),
    Column("documentName", String),
    Column("position", Integer, nullable=False),
    Column("isPublished", Boolean, nullable=False, default=False),
    Column("isFree", Boolean, nullable=False, default=False),
    Column("courseId", String, ForeignKey("Course.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

chapter_attachment = Table(
    "ChapterAttachment",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("url", Text, nullable=False),
    Column("position", Integer, nullable=False, default=0),
    Column("chapterId", String, ForeignKey("Chapter.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

user_progress = Table(
    "UserProgress",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("chapterId", String, ForeignKey("Chapter.id", ondelete="CASCADE"), nullable=False),
    Column("isCompleted", Boolean, nullable=False, default=False),
    *_timestamps(),
    UniqueConstraint("userId", "chapterId", name="UserProgress_userId_chapterId_key"),
)

purchase_code = Table(
    "PurchaseCode",
    metadata,
    Column("id", String, primary_key=True),
    Column("code", String, nullable=False, unique=True),
    Column("courseId", String, ForeignKey("Course.id", ondelete="CASCADE"), nullable=False),
    Column("createdBy", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("usedBy", String, ForeignKey("User.id", ondelete="SET NULL")),
    Column("usedAt", DateTime),
    Column("isUsed", Boolean, nullable=False, default=False),
    *_timestamps(),
)

purchase = Table(
    "Purchase",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("courseId", String, ForeignKey("Course.id", ondelete="CASCADE"), nullable=False),
    Column("status", String, nullable=False, default="ACTIVE"),
    Column("purchaseCodeId", String, ForeignKey("PurchaseCode.id", ondelete="SET NULL")),
    *_timestamps(),
    UniqueConstraint("userId", "courseId", name="Purchase_userId_courseId_key"),
)

balance_transaction = Table(
    "BalanceTransaction",
    metadata,
    Column("id", String, primary_key=True),
    Column("userId", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("amount", Float, nullable=False),
    Column("type", String, nullable=False),
    Column("description", Text),
    *_timestamps(),
)

quiz = Table(
    "Quiz",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("description", Text),
    Column("position", Integer, nullable=False),
    Column("isPublished", Boolean, nullable=False, default=False),
    Column("timer", Integer),
    Column("maxAttempts", Integer, nullable=False, default=1),
    Column("courseId", String, ForeignKey("Course.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

question = Table(
    "Question",
    metadata,
    Column("id", String, primary_key=True),
    Column("text", Text, nullable=False),
    Column("type", String, nullable=False),
    Column("options", JSON),
    Column("correctAnswer", Text, nullable=False),
    Column("points", Integer, nullable=False, default=1),
    Column("imageUrl", Text),
    Column("position", Integer, nullable=False),
    Column("quizId", String, ForeignKey("Quiz.id", ondelete="CASCADE"), nullable=False),
    *_timestamps(),
)

quiz_result = Table(
    "QuizResult",
    metadata,
    Column("id", String, primary_key=True),
    Column("studentId", String, ForeignKey("User.id", ondelete="CASCADE"), nullable=False),
    Column("quizId", String, ForeignKey("Quiz.id", ondelete="CASCADE"), nullable=False),
    Column("score", Integer, nullable=False),
    Column("totalPoints", Integer, nullable=False),
    Column("percentage", Float, nullable=False),
    Column("attemptNumber", Integer, nullable=False, default=1),
    Column("submittedAt", DateTime, nullable=False),
    *_timestamps(),
)

quiz_answer = Table(
    "QuizAnswer",
    metadata,
    Column("id", String, primary_key=True),
    Column("questionId", String, ForeignKey("Question.id", ondelete="CASCADE"), nullable=False),
    Column("quizResultId", String, ForeignKey("QuizResult.id", ondelete="CASCADE"), nullable=False),
    Column("studentAnswer", Text, nullable=False),
    Column("correctAnswer", Text, nullable=False),
    Column("isCorrect", Boolean, nullable=False),
    Column("pointsEarned", Integer, nullable=False, default=0),
    *_timestamps(),
)


@dataclass(frozen=True)
class TableSpec:
    """How one table is migrated."""
    table: Table
    conflict_columns: Tuple[str, ...] = ("id",)
    # Applied when the source value is NULL.
    defaults: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def name(self) -> str:
        return self.table.name

    @property
    def key_column(self) -> str:
        return list(self.table.primary_key.columns)[0].name

    @property
    def columns(self) -> List[str]:
        return [c.name for c in self.table.columns]

    @property
    def update_columns(self) -> List[str]:
        """Columns overwritten when the conflict target already exists."""
        skip = set(self.conflict_columns) | {self.key_column}
        return [name for name in self.columns if name not in skip]

    def prepare(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Restrict a source row to this table's columns and fill defaults."""
        row = {name: values.get(name) for name in self.columns}
        for name, default in self.defaults.items():
            if row.get(name) in (None, ""):
                row[name] = default
        return row


# Foreign-key dependency order.
TABLE_SPECS: List[TableSpec] = [
    TableSpec(user),
    TableSpec(course),
    TableSpec(attachment),
    TableSpec(chapter, defaults={"videoType": "UPLOAD"}),
    TableSpec(chapter_attachment),
    TableSpec(user_progress, conflict_columns=("userId", "chapterId")),
    TableSpec(purchase_code),
    TableSpec(purchase, conflict_columns=("userId", "courseId")),
    TableSpec(balance_transaction),
    TableSpec(quiz),
    TableSpec(question),
    TableSpec(quiz_result),
    TableSpec(quiz_answer),
]

MIGRATION_ORDER: List[str] = [spec.name for spec in TABLE_SPECS]

_SPECS_BY_NAME = {spec.name: spec for spec in TABLE_SPECS}


def get_table_spec(name: str) -> TableSpec:
    """Look up a table spec by table name."""
    try:
        return _SPECS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name}. Known tables: {', '.join(MIGRATION_ORDER)}")
