"""
BaseService -- abstract base for the admissions engines.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and persist through
    ``session.flush()``, never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush within the caller's transaction and never commit or
      roll back the outer transaction themselves.  Savepoints
      (``begin_nested``) are theirs to open and close.  The caller
      (AdmissionsOrchestrator or a test) owns commit/rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session

from admissions_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for the admissions engines.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only queries; those live in
          ``admissions_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
