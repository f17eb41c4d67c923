from ..db.engine_sync import get_sync_session
from ..models.setting import Setting


def get_setting_sync(key: str) -> str | None:
    """
    Reads one setting with a short-lived session.
    Used outside request handling (scheduler, launcher).
    """
    session_gen = get_sync_session()
    session = next(session_gen)
    try:
        setting = session.get(Setting, key)
        return setting.value if setting else None
    finally:
        session_gen.close()
