import time
import uuid


def now_ts() -> float:
    return time.time()


def new_record_id() -> str:
    return uuid.uuid4().hex


def matches_filter(record: dict, record_filter: dict | None) -> bool:
    return all(record.get(key) == expected for key, expected in (record_filter or {}).items())
