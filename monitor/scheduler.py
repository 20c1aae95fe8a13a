"""Background scheduler for periodic rule evaluation."""
import logging
import threading

import schedule

logger = logging.getLogger("alertengine.scheduler")


class EvaluationScheduler:
    def __init__(self, evaluator, interval_seconds=30):
        if interval_seconds < 1:
            raise ValueError("interval_seconds must be >= 1")
        self.evaluator = evaluator
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._stop = threading.Event()
        self._callbacks = []
        self._consecutive_failures = 0

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def on_evaluate(self, callback):
        """Register callback called with each evaluation result."""
        self._callbacks.append(callback)

    def start(self):
        """Start background evaluation."""
        if self.running:
            return
        self._stop.clear()
        self._scheduler.every(self.interval).seconds.do(self._evaluate_job)

        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started (every {self.interval}s)")

    def stop(self):
        """Stop background evaluation."""
        self._stop.set()
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Scheduler stopped")

    def _run_loop(self):
        # Evaluate immediately, then on schedule
        self._evaluate_job()
        while not self._stop.is_set():
            self._scheduler.run_pending()
            self._stop.wait(1)

    def run_once(self):
        return self._evaluate_job()

    def _evaluate_job(self):
        try:
            result = self.evaluator.evaluate(cancel=self._stop)
            self._consecutive_failures = 0
        except Exception as e:
            self._consecutive_failures += 1
            logger.error(f"Evaluation failed ({self._consecutive_failures} consecutive): {e}")
            if self._consecutive_failures >= 5:
                logger.critical("5+ consecutive evaluation failures!")
            return None
        for cb in self._callbacks:
            try:
                cb(result)
            except Exception as e:
                logger.warning(f"Callback error: {e}")
        return result
