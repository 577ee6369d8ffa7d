"""
Daily profit recording.

Appends one ``Date;DailyProfit`` row per trading day to a semicolon CSV and
keeps the previous balance in a small JSON checkpoint, keyed per symbol and
grid instance, so profit survives restarts.
"""

import csv
import json
from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path

from gridbot.utils.logger import get_logger

logger = get_logger(__name__)

CSV_HEADER = ("Date", "DailyProfit")
CSV_DELIMITER = ";"


class BalanceCheckpoint:
    """Scalar previous-balance store backed by a JSON file."""

    def __init__(self, path: Path, key: str) -> None:
        self._path = Path(path)
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def _read_all(self) -> dict[str, str]:
        try:
            if not self._path.exists():
                return {}
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("balance_checkpoint_unreadable", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Decimal | None:
        raw = self._read_all().get(self._key)
        if raw is None:
            return None
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            logger.warning("balance_checkpoint_invalid", key=self._key, value=raw)
            return None

    def save(self, balance: Decimal) -> bool:
        """
        Store the balance under this checkpoint's key.

        Returns:
            False if the file could not be written.
        """
        data = self._read_all()
        data[self._key] = str(balance)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
        except OSError as e:
            logger.error("Could not save balance checkpoint", path=str(self._path), error=str(e))
            return False
        return True


class DailyProfitRecorder:
    """
    Records realized daily profit as balance deltas.

    Lifecycle:
        1. start(now): load previous balance, prepare the CSV
        2. on_bar(now): on the first bar of a new day, record the day that ended
        3. on_stop(now): record the (partial) current day, save the balance
    """

    def __init__(
        self,
        csv_path: Path,
        checkpoint: BalanceCheckpoint,
        balance_source: Callable[[], Decimal],
    ) -> None:
        self._csv_path = Path(csv_path)
        self._checkpoint = checkpoint
        self._balance_source = balance_source

        self._enabled = True
        self._previous_balance = Decimal("0")
        self._last_recorded: date | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def previous_balance(self) -> Decimal:
        return self._previous_balance

    @property
    def last_recorded(self) -> date | None:
        return self._last_recorded

    def start(self, now: datetime) -> None:
        loaded = self._checkpoint.load()
        if loaded is not None:
            self._previous_balance = loaded
            logger.info("Loaded previous balance", balance=str(loaded))
        else:
            self._previous_balance = self._balance_source()
            self._checkpoint.save(self._previous_balance)
            logger.info("Initialized previous balance", balance=str(self._previous_balance))

        try:
            self._csv_path.parent.mkdir(parents=True, exist_ok=True)
            if not self._csv_path.exists() or self._csv_path.stat().st_size == 0:
                with open(self._csv_path, "a", newline="", encoding="utf-8") as f:
                    csv.writer(f, delimiter=CSV_DELIMITER).writerow(CSV_HEADER)
        except OSError as e:
            logger.error("Daily profit log disabled", path=str(self._csv_path), error=str(e))
            self._enabled = False
            return

        self._last_recorded = self._read_last_date() or now.date()

    def _read_last_date(self) -> date | None:
        try:
            with open(self._csv_path, newline="", encoding="utf-8") as f:
                rows = [row for row in csv.reader(f, delimiter=CSV_DELIMITER) if row]
        except OSError as e:
            logger.warning("Could not read daily profit log", error=str(e))
            return None

        if len(rows) < 2:
            return None
        try:
            return date.fromisoformat(rows[-1][0])
        except ValueError:
            logger.warning("Could not parse last recorded date", row=rows[-1])
            return None

    def on_bar(self, now: datetime) -> None:
        if not self._enabled or self._last_recorded is None:
            return
        today = now.date()
        if today > self._last_recorded:
            self.record(today - timedelta(days=1))
            self._last_recorded = today

    def on_stop(self, now: datetime) -> None:
        if not self._enabled:
            return
        balance = self._balance_source()
        if (
            self._last_recorded is None
            or now.date() > self._last_recorded
            or balance != self._previous_balance
        ):
            self.record(now.date())
        self._checkpoint.save(balance)
        logger.info("Final balance saved", balance=str(balance))

    def record(self, record_date: date) -> bool:
        """
        Append the balance change since the last record.

        Returns:
            True if a row was written.
        """
        if not self._enabled:
            return False

        balance = self._balance_source()
        profit = balance - self._previous_balance

        if profit == 0 and record_date == self._last_recorded:
            logger.info("No profit change, skipping record", date=record_date.isoformat())
            return False

        try:
            with open(self._csv_path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f, delimiter=CSV_DELIMITER).writerow(
                    (record_date.isoformat(), f"{profit:.2f}")
                )
        except OSError as e:
            logger.error("Could not write daily profit", path=str(self._csv_path), error=str(e))
            return False

        self._previous_balance = balance
        self._checkpoint.save(balance)
        logger.info("Recorded daily profit", date=record_date.isoformat(), profit=f"{profit:.2f}")
        return True
