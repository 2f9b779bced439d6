"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service in the kernel.  Services receive a SQLAlchemy ``Session`` and
    use ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.  Every class in
    ``records_kernel/services/`` that mutates rows extends this class.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back.  ``session_scope()`` (or
      the test harness) owns commit/rollback, so a failed record write
      leaves nothing behind.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from records_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage commit/rollback.
        - Does NOT own multi-record queries; those live in
          ``records_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
