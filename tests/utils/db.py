from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy import event
from sqlalchemy.orm import Session


@contextmanager
def statements_after_last_commit(db: Session) -> Iterator[List[str]]:
    """
    Yields the SQL statements run on ``db``'s engine since the session last
    committed. Once the block exits the list holds only what ran after the
    final commit.
    """
    statements: List[str] = []
    bind = db.get_bind()

    def on_commit(session):
        statements.clear()

    def on_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db, "after_commit", on_commit)
    event.listen(bind, "before_cursor_execute", on_execute)
    try:
        yield statements
    finally:
        event.remove(bind, "before_cursor_execute", on_execute)
        event.remove(db, "after_commit", on_commit)
