import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import Base, DATABASE_URL, make_engine
from exceptions import PersistenceError
from models import Analysis, Comment, CommentResponse, CommentStatus

logger = logging.getLogger(__name__)

# Демо-набор: английский, немецкий, сербохорватский, турецкий
SEED_COMMENTS = [
    "Great job on the accessibility updates! It's much easier to use with a screen reader now.",
    "I appreciate the faster load times, but the font size is too small on mobile.",
    "Can we get a dark mode? My eyes hurt after staring at this all day.",
    "Who designed this? It looks like it was made in 1990. Fix it.",
    "You guys are idiots. This update ruined my workflow.",
    "Die neue Benutzeroberfläche ist völlig unübersichtlich.",
    "Ich kann meine gespeicherten Filter nicht mehr finden.",
    "Der Export funktioniert nicht, bitte beheben.",
    "Super, dass die Barrierefreiheit verbessert wurde!",
    "Warum dauert das Hochladen von Dateien so lange?",
    "Dieses scheiß System stürzt ständig ab!",
    "Ne mogu da pronađem dugme za izvoz podataka.",
    "Sistem često pada kada pokušam da otpremim fajl.",
    "Ovaj prokleti interfejs je katastrofa!",
    "Yeni arayüz kafa karıştırıcı ve zor anlaşılıyor.",
    "Yükleme işlemi her seferinde hata veriyor.",
    "Bu lanet uygulama çalışmıyor!",
]

ANALYSIS_FIELDS = (
    "detected_language",
    "topic",
    "sentiment",
    "urgency",
    "requires_response",
)


class CommentStore:
    """
    Хранилище комментариев, анализов и ответов.

    Один движок на процесс: open() при старте приложения, close() при остановке.
    Каждый публичный метод — отдельная транзакция.
    """

    def __init__(self, database_url: str = DATABASE_URL):
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False
        )

    def open(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        self.seed_if_empty()

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Откат транзакции: %s", e, exc_info=True)
            raise PersistenceError(f"Database error: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def seed_if_empty(self) -> int:
        with self.session() as db:
            if db.query(Comment).count():
                return 0
            db.add_all(Comment(text=text) for text in SEED_COMMENTS)
        logger.info("Добавлено %s демо-комментариев", len(SEED_COMMENTS))
        return len(SEED_COMMENTS)

    def _joined_query(self, db: Session):
        return (
            db.query(
                Comment.id,
                Comment.text,
                Comment.status,
                Comment.translated_text,
                Analysis.detected_language,
                Analysis.topic,
                Analysis.sentiment,
                Analysis.urgency,
                Analysis.requires_response,
                Analysis.inappropriate_content,
                Analysis.explanation_json,
                CommentResponse.text.label("response_text"),
            )
            .outerjoin(Analysis, Analysis.comment_id == Comment.id)
            .outerjoin(CommentResponse, CommentResponse.comment_id == Comment.id)
        )

    @staticmethod
    def _to_record(row) -> Dict[str, Any]:
        record = row._asdict()
        raw = record.pop("explanation_json")
        record["explanation"] = json.loads(raw) if raw is not None else None
        return record

    def list_comments(self) -> List[Dict[str, Any]]:
        with self.session() as db:
            rows = self._joined_query(db).order_by(Comment.id).all()
            return [self._to_record(r) for r in rows]

    def get_comment(self, comment_id: int) -> Optional[Dict[str, Any]]:
        with self.session() as db:
            row = self._joined_query(db).filter(Comment.id == comment_id).first()
            return self._to_record(row) if row else None

    def save_analysis(self, comment_id: int, analysis: Dict[str, Any]) -> None:
        """
        Заменяет анализ комментария: старая строка удаляется, новая вставляется
        в той же транзакции. Отсутствующие поля — "Unknown" (для
        inappropriate_content — "None").
        """
        def value_or(field, default):
            value = analysis.get(field)
            return default if value is None else value

        values = {field: value_or(field, "Unknown") for field in ANALYSIS_FIELDS}
        values["inappropriate_content"] = value_or("inappropriate_content", "None")
        values["explanation_json"] = json.dumps(
            value_or("explanation", []), ensure_ascii=False
        )

        with self.session() as db:
            db.query(Analysis).filter(Analysis.comment_id == comment_id).delete()
            db.add(Analysis(comment_id=comment_id, **values))

    def reset_demo(self) -> None:
        with self.session() as db:
            db.query(Analysis).delete()
            db.query(CommentResponse).delete()
            db.query(Comment).update(
                {
                    Comment.status: CommentStatus.UNREVIEWED.value,
                    Comment.translated_text: None,
                }
            )

    def save_action(
        self,
        comment_id: int,
        status: str,
        response_text: Optional[str] = None,
    ) -> None:
        """Статус и ответ сохраняются атомарно; пустой ответ не трогает старый."""
        with self.session() as db:
            db.query(Comment).filter(Comment.id == comment_id).update(
                {Comment.status: status}
            )
            if response_text:
                db.query(CommentResponse).filter(
                    CommentResponse.comment_id == comment_id
                ).delete()
                db.add(CommentResponse(comment_id=comment_id, text=response_text))

    def save_translation(self, comment_id: int, translated_text: str) -> None:
        with self.session() as db:
            db.query(Comment).filter(Comment.id == comment_id).update(
                {Comment.translated_text: translated_text}
            )
