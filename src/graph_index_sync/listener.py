"""Transaction hooks wiring the translator and dispatcher into a graph store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from loguru import logger

if TYPE_CHECKING:
    from graph_index_sync.dispatcher import Dispatcher
    from graph_index_sync.events import ChangeSet
    from graph_index_sync.operations import PendingOperation
    from graph_index_sync.translator import ChangeTranslator


class TransactionListener(Protocol):
    def before_commit(self, change_set: ChangeSet) -> list[PendingOperation]: ...

    def after_commit(self, change_set: ChangeSet, batch: list[PendingOperation]) -> None: ...

    def after_rollback(self, change_set: ChangeSet, batch: list[PendingOperation]) -> None: ...


class TransactionEventSource(Protocol):
    """A store that reports its transactions to registered listeners.

    For every transaction the store calls ``before_commit`` on the committing
    thread, then ``after_commit`` or ``after_rollback`` with whatever
    ``before_commit`` returned.
    """

    def register_transaction_listener(self, listener: TransactionListener) -> None: ...

    def unregister_transaction_listener(self, listener: TransactionListener) -> None: ...


class IndexingTransactionListener:
    """Computes a batch before commit, ships it after commit, drops it on rollback."""

    def __init__(self, translator: ChangeTranslator, dispatcher: Dispatcher) -> None:
        self.translator = translator
        self.dispatcher = dispatcher

    def before_commit(self, change_set: ChangeSet) -> list[PendingOperation]:
        """Translate the transaction. Never raises into the store's commit path."""
        try:
            actions = self.translator.translate(change_set)
        except Exception:
            logger.exception("Could not compute index operations, transaction will not be indexed")
            return []
        return list(actions.values()) if actions else []

    def after_commit(self, change_set: ChangeSet, batch: list[PendingOperation]) -> None:  # noqa: ARG002
        if not batch:
            return
        try:
            self.dispatcher.dispatch(batch)
        except Exception as exc:
            logger.opt(exception=exc).warning("Error updating Elasticsearch: {}", exc)

    def after_rollback(self, change_set: ChangeSet, batch: list[PendingOperation]) -> None:  # noqa: ARG002
        pass
