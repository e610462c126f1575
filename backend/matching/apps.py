# matching/apps.py
import threading

from django.apps import AppConfig


class MatchingConfig(AppConfig):
    """
    Owns the process-wide matching engine.

    Views reach it through apps.get_app_config("matching"); every engine call
    must happen while holding `lock`, since Django may serve requests from
    several threads.
    """
    name = "matching"

    def ready(self):
        self.lock = threading.Lock()
        self.reset()

    def reset(self):
        from .engine import MatchingEngine

        with self.lock:
            self.engine = MatchingEngine()
