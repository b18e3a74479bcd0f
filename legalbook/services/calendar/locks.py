import threading
from collections import defaultdict
from contextlib import contextmanager


class ProfessionalLocks:
    """One mutex per professional id, shared by every store in the process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)

    @contextmanager
    def hold(self, professional_id):
        with self._guard:
            lock = self._locks[str(professional_id)]
        with lock:
            yield


process_locks = ProfessionalLocks()
