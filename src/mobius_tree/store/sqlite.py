"""SQLite row store on SQLAlchemy Core.

The node table is described as a :class:`sqlalchemy.Table` over the physical
column names configured in :class:`~mobius_tree.config.ColumnNames`, and the
store's predicate objects are translated into SQLAlchemy expressions, so the
same query objects run against an in-memory dict or a database table.  The
uniqueness of ``(a, c)`` is a table constraint; violations surface as
:class:`ConstraintViolation`.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    Select,
    Table,
    UniqueConstraint,
    and_,
    create_engine,
    event,
    false,
    or_,
    select,
    text,
    true,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import URL, Connection, Engine, RowMapping
from sqlalchemy.sql.elements import ColumnElement

from ..config import TREE_FIELDS, TreeConfig, coerce_config
from .common import (
    OPERATORS,
    AllOf,
    AnyOf,
    Compare,
    Condition,
    ConstraintViolation,
    DATA_FIELD,
    ID_FIELD,
    Node,
    NodeId,
    NotFound,
    Query,
    RowStore,
    StoreError,
    check_writable,
)

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

_OVERFLOW_MESSAGE = "Matrix coefficient exceeds the 64-bit range of SQLite integers"


def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
    # pysqlite opens transactions on its own; SAVEPOINT needs them emitted by SQLAlchemy.
    dbapi_connection.isolation_level = None


def _emit_begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def build_engine(path: Union[str, Path]) -> Engine:
    engine = create_engine(
        URL.create("sqlite", database=str(path)),
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _disable_driver_transactions)
    event.listen(engine, "begin", _emit_begin)
    return engine


def build_table(config: TreeConfig, metadata: Optional[MetaData] = None) -> Table:
    """Describe the node table for ``config``."""

    cols = config.columns
    metadata = metadata if metadata is not None else MetaData()
    matrix = [Column(cols.column(name), Integer) for name in ("a", "b", "c", "d")]
    return Table(
        config.table,
        metadata,
        Column(config.id_column, Integer, primary_key=True, autoincrement=True),
        *matrix,
        Column(cols.left, Float, nullable=False, server_default=text("1")),
        Column(cols.right, Float, nullable=True),
        Column(cols.is_inner, Boolean, nullable=False, server_default=text("0")),
        Column(config.payload_column, JSON, nullable=False, server_default=text("'{}'")),
        *(CheckConstraint(column > 0, name=f"{config.table}_{column.name}_positive") for column in matrix),
        UniqueConstraint(cols.a, cols.c, name=f"{config.table}_{cols.a}{cols.c}"),
        Index(f"{config.table}_parent", cols.b, cols.d),
        Index(f"{config.table}_bounds", cols.left, cols.right),
        sqlite_autoincrement=True,
    )


class SQLiteRowStore(RowStore):
    """Row store persisting nodes in a single SQLite table.

    One connection is held for the lifetime of the store.  Every call outside
    :meth:`transaction` commits on its own; inside it, writes join the open
    transaction and nested blocks become savepoints.
    """

    def __init__(
        self,
        path: Union[str, Path] = MEMORY_DATABASE,
        config: Optional[TreeConfig] = None,
        *,
        create: bool = True,
    ) -> None:
        self.config = coerce_config(config)
        self.path = path
        self.metadata = MetaData()
        self.table = build_table(self.config, self.metadata)
        self.engine = build_engine(path)
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = self.engine.connect()
        if create:
            self.create_schema()

    # ------------------------------------------------------------------ schema
    def _column(self, logical: str) -> Column:
        if logical == ID_FIELD:
            name = self.config.id_column
        elif logical == DATA_FIELD:
            name = self.config.payload_column
        else:
            name = self.config.columns.column(logical)
        return self.table.c[name]

    def create_schema(self) -> None:
        with self._connection() as conn:
            self.metadata.create_all(conn, checkfirst=True)

    # ------------------------------------------------------------- translation
    def render_condition(self, condition: Condition) -> ColumnElement:
        """Translate ``condition`` into a SQLAlchemy boolean expression."""

        if isinstance(condition, Compare):
            column = self._column(condition.field)
            if condition.value is None:
                return column.is_(None) if condition.op == "=" else column.is_not(None)
            return OPERATORS[condition.op](column, condition.value)
        if isinstance(condition, AllOf):
            if not condition.terms:
                return true()
            return and_(*(self.render_condition(term) for term in condition.terms))
        if isinstance(condition, AnyOf):
            if not condition.terms:
                return false()
            return or_(*(self.render_condition(term) for term in condition.terms))
        raise TypeError(f"Unsupported condition {condition!r}")

    def render_query(self, query: Query) -> Select:
        statement = select(self.table).where(self.render_condition(query.where))
        for name, descending in query.order_by:
            column = self._column(name)
            statement = statement.order_by(column.desc() if descending else column.asc())
        return statement

    # ------------------------------------------------------------------ writes
    def _row_values(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, value in check_writable(fields).items():
            if name == DATA_FIELD:
                value = dict(value or {})
            values[self._column(name).name] = value
        return values

    def persist(self, fields: Mapping[str, Any]) -> NodeId:
        if fields.get("a") is None or fields.get("c") is None:
            raise StoreError("Nodes require both an a and a c value")
        return self._insert(self._row_values(fields))

    def restore_row(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        values = self._row_values(fields)
        values[self.config.id_column] = int(node_id)
        self._insert(values)

    def _insert(self, values: Dict[str, Any]) -> NodeId:
        with self._connection() as conn:
            result = conn.execute(self.table.insert().values(values))
            node_id = int(result.inserted_primary_key[0])
        logger.debug("Inserted node %s into %s", node_id, self.config.table)
        return node_id

    def update(self, node_id: NodeId, fields: Mapping[str, Any]) -> None:
        values = self._row_values(fields)
        if not values:
            self.get(node_id)
            return
        statement = (
            self.table.update()
            .where(self._column(ID_FIELD) == int(node_id))
            .values(values)
        )
        with self._connection() as conn:
            if conn.execute(statement).rowcount == 0:
                raise NotFound(f"Node {node_id} does not exist")

    def delete(self, node_id: NodeId) -> None:
        statement = self.table.delete().where(self._column(ID_FIELD) == int(node_id))
        with self._connection() as conn:
            if conn.execute(statement).rowcount == 0:
                raise NotFound(f"Node {node_id} does not exist")

    # ------------------------------------------------------------------- reads
    def get(self, node_id: NodeId) -> Node:
        statement = select(self.table).where(self._column(ID_FIELD) == int(node_id))
        with self._connection() as conn:
            row = conn.execute(statement).mappings().first()
        if row is None:
            raise NotFound(f"Node {node_id} does not exist")
        return self._to_node(row)

    def select(self, query: Query) -> Iterator[Node]:
        with self._connection() as conn:
            rows = conn.execute(self.render_query(query)).mappings().all()
        return (self._to_node(row) for row in rows)

    # ------------------------------------------------------------- transactions
    @contextmanager
    def transaction(self) -> Iterator["SQLiteRowStore"]:
        """Run the block in a transaction, or a savepoint when one is open."""

        with self._lock:
            depth = self._depth
            scope = self._conn.begin_nested() if depth else self._conn.begin()
            self._depth += 1
            try:
                with scope:
                    yield self
            except BaseException:
                logger.debug("Rolled back transaction at depth %d", depth)
                raise
            finally:
                self._depth -= 1

    def close(self) -> None:
        with self._lock:
            self._conn.close()
            self.engine.dispose()

    def __enter__(self) -> "SQLiteRowStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ----------------------------------------------------------------- helpers
    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        """The shared connection, inside a transaction committed on exit."""

        with self._lock:
            try:
                if self._depth:
                    yield self._conn
                else:
                    with self._conn.begin():
                        yield self._conn
            except sa_exc.IntegrityError as exc:
                message = str(exc.orig)
                if "UNIQUE" in message.upper():
                    raise ConstraintViolation(message) from exc
                raise StoreError(message) from exc
            except OverflowError as exc:
                raise StoreError(_OVERFLOW_MESSAGE) from exc
            except sa_exc.StatementError as exc:
                if isinstance(exc.orig, OverflowError):
                    raise StoreError(_OVERFLOW_MESSAGE) from exc
                raise StoreError(str(exc.orig)) from exc
            except sa_exc.SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc

    def _to_node(self, row: RowMapping) -> Node:
        values = {name: row[self._column(name).name] for name in TREE_FIELDS}
        payload = row[self.config.payload_column]
        return Node(
            id=int(row[self.config.id_column]),
            a=values["a"],
            b=values["b"],
            c=values["c"],
            d=values["d"],
            left=float(values["left"]),
            right=None if values["right"] is None else float(values["right"]),
            is_inner=bool(values["is_inner"]),
            data=dict(payload) if payload else {},
        )


__all__ = ["MEMORY_DATABASE", "SQLiteRowStore", "build_engine", "build_table"]
