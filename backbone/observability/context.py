"""
Run context for one computation.

Every call to compute() executes inside a RunContext so that log lines
emitted by any stage of the pipeline carry the same run id.
"""

import contextvars
import uuid

_run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_company_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "company_id", default=None
)


def get_run_id() -> str | None:
    """Get the current run ID from context."""
    return _run_id_var.get()


def set_run_id(run_id: str) -> contextvars.Token:
    """Set the run ID in context. Returns token for reset."""
    return _run_id_var.set(run_id)


def get_company_id() -> str | None:
    """Get the company currently being computed, if any."""
    return _company_id_var.get()


def generate_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:16]}"


class RunContext:
    """
    Context manager scoping log output to one computation.

    Usage:
        with RunContext() as ctx:
            logger.info("Computing portfolio")

        with RunContext(run_id="run-abc123"):
            ...
    """

    def __init__(self, run_id: str | None = None):
        self.run_id = run_id or generate_run_id()
        self._token: contextvars.Token | None = None

    def __enter__(self) -> "RunContext":
        self._token = set_run_id(self.run_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _run_id_var.reset(self._token)


class CompanyScope:
    """Marks log lines with the company whose DAG is executing."""

    def __init__(self, company_id: str):
        self.company_id = company_id
        self._token: contextvars.Token | None = None

    def __enter__(self) -> "CompanyScope":
        self._token = _company_id_var.set(self.company_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _company_id_var.reset(self._token)
