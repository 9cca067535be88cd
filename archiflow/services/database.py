import copy
import re
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

import firebase_admin
from firebase_admin import db, exceptions

from ..errors import AccessDenied, InvalidKey, NotFound, UpstreamUnavailable
from ..utils.logging import get_logger

logger = get_logger(__name__)

TransactionFn = Callable[[Any], Any]

# Realtime Database keys may not contain these characters
KEY_PATTERN = r"^[^/.#$\[\]]+$"
_KEY = re.compile(KEY_PATTERN)


def check_keys(value: Any) -> None:
    """Raise ``InvalidKey`` for any dict key in ``value`` that is not a plain key.

    A "/" inside an update key would otherwise address a deeper path.
    """
    if isinstance(value, Mapping):
        for key, child in value.items():
            if not isinstance(key, str) or not _KEY.fullmatch(key):
                raise InvalidKey(str(key))
            check_keys(child)
    elif isinstance(value, (list, tuple)):
        for child in value:
            check_keys(child)


class Database(ABC):
    """Key-path document store, e.g. ``users/{uid}`` or ``calls/{id}``."""

    @abstractmethod
    def get(self, path: str) -> Any:
        ...

    @abstractmethod
    def set(self, path: str, value: Any) -> None:
        ...

    @abstractmethod
    def update(self, path: str, values: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        ...

    @abstractmethod
    def list_by_user(self, collection: str, uid: str) -> list[dict]:
        """Every child of ``collection`` whose ``userId`` equals ``uid``."""

    @abstractmethod
    def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        """Atomically replace the value at ``path`` with ``update_fn(current)``.

        ``update_fn`` may run more than once when a concurrent write wins the
        race. Exceptions it raises abort the transaction and propagate.
        """


class RealtimeDatabase(Database):
    """Firebase Realtime Database through the Admin SDK. Blocking."""

    def __init__(self, app: firebase_admin.App | None = None):
        self._app = app

    def _ref(self, path: str) -> db.Reference:
        try:
            return db.reference(path, app=self._app)
        except ValueError as exc:
            raise InvalidKey(path) from exc

    def get(self, path: str) -> Any:
        try:
            return self._ref(path).get()
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc

    def set(self, path: str, value: Any) -> None:
        check_keys(value)
        try:
            self._ref(path).set(value)
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc

    def update(self, path: str, values: Mapping[str, Any]) -> None:
        if not values:
            return
        check_keys(values)
        try:
            self._ref(path).update(dict(values))
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc

    def delete(self, path: str) -> None:
        try:
            self._ref(path).delete()
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc

    def list_by_user(self, collection: str, uid: str) -> list[dict]:
        try:
            found = self._ref(collection).order_by_child("userId").equal_to(uid).get()
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc
        return list(found.values()) if found else []

    def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        try:
            return self._ref(path).transaction(update_fn)
        except db.TransactionAbortedError as exc:
            logger.warning("Transaction aborted", path=path)
            raise UpstreamUnavailable("database", "too much contention, try again") from exc
        except exceptions.FirebaseError as exc:
            raise UpstreamUnavailable("database", str(exc)) from exc


class InMemoryDatabase(Database):
    """Process-local stand-in for the Realtime Database.

    Transactions are optimistic like Firebase's: the update function runs
    outside the lock against a snapshot and the write is retried when any
    other write landed in between.
    """

    max_transaction_retries = 25

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: dict = copy.deepcopy(dict(data or {}))
        self._version = 0
        self._lock = threading.Lock()

    @staticmethod
    def _split(path: str) -> list[str]:
        parts = [part for part in path.strip("/").split("/") if part]
        for part in parts:
            if not _KEY.fullmatch(part):
                raise InvalidKey(path)
        return parts

    def _read(self, path: str) -> Any:
        node: Any = self._data
        for part in self._split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def _write(self, path: str, value: Any) -> None:
        parts = self._split(path)
        if not parts:
            self._data = copy.deepcopy(value) if isinstance(value, dict) else {}
            self._version += 1
            return
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)
        self._version += 1

    def get(self, path: str) -> Any:
        with self._lock:
            return self._read(path)

    def set(self, path: str, value: Any) -> None:
        check_keys(value)
        with self._lock:
            self._write(path, value)

    def update(self, path: str, values: Mapping[str, Any]) -> None:
        check_keys(values)
        with self._lock:
            current = self._read(path)
            merged = current if isinstance(current, dict) else {}
            merged.update(values)
            self._write(path, merged)

    def delete(self, path: str) -> None:
        with self._lock:
            if self._read(path) is not None:
                self._write(path, None)

    def list_by_user(self, collection: str, uid: str) -> list[dict]:
        with self._lock:
            children = self._read(collection) or {}
        return [child for child in children.values() if isinstance(child, dict) and child.get("userId") == uid]

    def transaction(self, path: str, update_fn: TransactionFn) -> Any:
        for _ in range(self.max_transaction_retries):
            with self._lock:
                snapshot = self._read(path)
                version = self._version
            new_value = update_fn(snapshot)
            with self._lock:
                if self._version == version:
                    self._write(path, new_value)
                    return copy.deepcopy(new_value)
        raise UpstreamUnavailable("database", "too much contention, try again")

    def reset(self) -> None:
        with self._lock:
            self._data = {}
            self._version += 1


def get_owned_record(database: Database, collection: str, record_id: str, uid: str, what: str) -> dict:
    """Load ``collection/record_id`` and check that ``uid`` owns it."""
    record = database.get(f"{collection}/{record_id}")
    if not record:
        raise NotFound(what)
    if record.get("userId") != uid:
        raise AccessDenied()
    return record


def ensure_not_foreign(database: Database, collection: str, record_id: str, uid: str) -> None:
    """Refuse to overwrite a record that belongs to someone else."""
    existing = database.get(f"{collection}/{record_id}")
    if existing and existing.get("userId") != uid:
        raise AccessDenied()
