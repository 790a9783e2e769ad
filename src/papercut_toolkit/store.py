"""本地记录存储：questions / folders / topics 三个集合

每个集合一张表：id 主键 + subject 索引 + 整条记录的 JSON。
一次 put / bulk_put 对应一个事务，要么整条（整批）写入，要么都不写入。
"""
from __future__ import annotations
import json
import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import BigInteger, Column, MetaData, String, Table, Text, create_engine, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from papercut_toolkit.errors import EntityNotFound, StoreUnavailable
from papercut_toolkit.records import COLLECTIONS, QUESTIONS, collection_of, from_record, to_record

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///data/papercut.db"

metadata = MetaData()

questions_table = Table(
    "questions", metadata,
    Column("id",         String(64), primary_key=True),
    Column("subject",    String(256), index=True, nullable=False),
    Column("created_at", BigInteger, default=0),
    Column("data",       Text, nullable=False),
)

folders_table = Table(
    "folders", metadata,
    Column("id",      String(64), primary_key=True),
    Column("subject", String(256), index=True, nullable=False),
    Column("data",    Text, nullable=False),
)

topics_table = Table(
    "topics", metadata,
    Column("id",      String(64), primary_key=True),
    Column("subject", String(256), index=True, nullable=False),
    Column("data",    Text, nullable=False),
)

TABLES: dict[str, Table] = {
    "questions": questions_table,
    "folders":   folders_table,
    "topics":    topics_table,
}


def _row_for(collection: str, entity: Any) -> dict:
    record = to_record(entity)
    row = {
        "id":      record["id"],
        "subject": record["subject"],
        "data":    json.dumps(record, ensure_ascii=False),
    }
    if collection == QUESTIONS:
        row["created_at"] = record.get("createdAt", 0)
    return row


class RecordStore:
    """显式持有的存储句柄：进程启动时 open()，之后所有操作都经由它"""

    def __init__(self, db_url: str = DEFAULT_DB_URL, echo: bool = False) -> None:
        self.db_url = db_url
        self.echo = echo
        self._engine: Engine | None = None

    # ── 生命周期 ──

    def open(self) -> "RecordStore":
        if self._engine is not None:
            return self
        try:
            engine = create_engine(self.db_url, echo=self.echo)
            metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"无法打开存储 {self.db_url}: {exc}") from exc
        self._engine = engine
        logger.debug("存储已打开: %s", self.db_url)
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.debug("存储已关闭: %s", self.db_url)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def __enter__(self) -> "RecordStore":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StoreUnavailable("存储尚未打开，请先调用 open()")
        return self._engine

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Connection]:
        engine = self.engine
        try:
            with engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("存储事务失败 (%s): %s", action, exc)
            raise StoreUnavailable(f"{action} 失败: {exc}") from exc

    @staticmethod
    def _table(collection: str) -> Table:
        if collection not in TABLES:
            raise ValueError(f"未知集合: {collection!r}，可选: {list(COLLECTIONS)}")
        return TABLES[collection]

    def _replace(self, conn: Connection, table: Table, rows: list[dict]) -> None:
        ids = [r["id"] for r in rows]
        conn.execute(table.delete().where(table.c.id.in_(ids)))
        conn.execute(table.insert(), rows)

    # ── 写入 ──

    def put(self, entity: Any) -> None:
        """按 id 插入或覆盖"""
        collection = collection_of(entity)
        row = _row_for(collection, entity)
        with self._transaction(f"写入 {collection}/{row['id']}") as conn:
            self._replace(conn, self._table(collection), [row])

    def bulk_put(self, entities: Iterable[Any]) -> int:
        """整批写入，单一事务；批内重复 id 以最后一条为准"""
        grouped: dict[str, dict[str, dict]] = {}
        for entity in entities:
            collection = collection_of(entity)
            row = _row_for(collection, entity)
            grouped.setdefault(collection, {})[row["id"]] = row

        total = sum(len(rows) for rows in grouped.values())
        if not total:
            return 0

        with self._transaction(f"批量写入 {total} 条") as conn:
            for collection, rows in grouped.items():
                self._replace(conn, self._table(collection), list(rows.values()))
        logger.debug("批量写入完成: %d 条", total)
        return total

    def delete(self, collection: str, entity_id: str) -> None:
        """删除不存在的 id 不报错"""
        table = self._table(collection)
        with self._transaction(f"删除 {collection}/{entity_id}") as conn:
            conn.execute(table.delete().where(table.c.id == entity_id))

    def delete_subject(self, subject: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        with self._transaction(f"删除科目 {subject}") as conn:
            for collection, table in TABLES.items():
                result = conn.execute(table.delete().where(table.c.subject == subject))
                counts[collection] = result.rowcount or 0
        logger.info("已删除科目 %s: %s", subject, counts)
        return counts

    # ── 读取 ──

    def _read(self, collection: str, stmt) -> list:
        with self._transaction(f"读取 {collection}") as conn:
            rows = conn.execute(stmt).all()
        return [from_record(collection, json.loads(row.data)) for row in rows]

    def find(self, collection: str, entity_id: str):
        table = self._table(collection)
        found = self._read(collection, select(table.c.data).where(table.c.id == entity_id))
        return found[0] if found else None

    def get(self, collection: str, entity_id: str):
        entity = self.find(collection, entity_id)
        if entity is None:
            raise EntityNotFound(collection, entity_id)
        return entity

    def get_all_by_subject(self, collection: str, subject: str) -> list:
        """不保证顺序，由调用方自行排序"""
        table = self._table(collection)
        return self._read(collection, select(table.c.data).where(table.c.subject == subject))

    def all(self, collection: str) -> list:
        table = self._table(collection)
        return self._read(collection, select(table.c.data))

    def subjects(self) -> list[str]:
        names: set[str] = set()
        with self._transaction("读取科目列表") as conn:
            for table in TABLES.values():
                names.update(conn.execute(select(table.c.subject).distinct()).scalars())
        return sorted(names)
