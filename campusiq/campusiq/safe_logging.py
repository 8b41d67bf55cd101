"""
Thread-safe logging handler для многопоточного Gunicorn (gthread).

Стандартный logging.StreamHandler может вызвать
RuntimeError: reentrant call inside <_io.BufferedWriter name='<stderr>'>
при одновременной записи из нескольких потоков (SSE stream + обычные запросы).
"""
import logging
import threading


class ThreadSafeStreamHandler(logging.StreamHandler):
    """
    Thread-safe версия StreamHandler.

    Использует RLock для предотвращения reentrant ошибок при
    одновременной записи из нескольких потоков.
    """

    _write_lock = threading.RLock()

    def emit(self, record):
        try:
            msg = self.format(record)
            with self._write_lock:
                self.stream.write(msg + self.terminator)
                self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)
