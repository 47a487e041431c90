from vision.core.config import settings


def isDebugMode() -> bool:
    """True when running locally (debug/development) or under tests."""
    return settings.MODE.lower() in ("debug", "development", "test")
