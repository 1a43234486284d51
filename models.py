import threading
from typing import Dict, Iterable, List, Optional

from schemas import CamelModel


class User(CamelModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = ""


class UserStore:
    """In-memory mapping from user id to ``User``.

    Ids are assigned as ``max(existing ids) + 1`` (or 1 when empty), recomputed
    on every insert. This is not a monotonic counter: after deleting the
    highest id, the next insert reuses it.

    A lock serializes each call. Sequences of calls are not atomic.
    """

    def __init__(self, records: Iterable[User] = ()):
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self.reset(records)

    def reset(self, records: Iterable[User]) -> None:
        with self._lock:
            self._users = {user.id: user.model_copy() for user in records}

    def list(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def get(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def next_id(self) -> int:
        with self._lock:
            return self._next_id()

    def _next_id(self) -> int:
        return max(self._users) + 1 if self._users else 1

    def insert(self, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> User:
        with self._lock:
            user = User(id=self._next_id(), first_name=first_name, last_name=last_name, email=email)
            self._users[user.id] = user
            return user

    def replace(self, user_id: int, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> Optional[User]:
        with self._lock:
            if user_id not in self._users:
                return None
            user = User(id=user_id, first_name=first_name, last_name=last_name, email=email)
            self._users[user_id] = user
            return user

    def remove(self, user_id: int) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)


SEED_USERS: List[User] = [
    User(id=1, first_name="Alice", last_name="Smith", email="alice@techhive.com"),
    User(id=2, first_name="Bob", last_name="Johnson", email="bob@techhive.com"),
]

# Stockage en mémoire (exemple)
users_db = UserStore(SEED_USERS)
