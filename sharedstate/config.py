import os


def _number(raw):
    try:
        return int(raw)
    except ValueError:
        return float(raw)


def get_config():
    return {
        # Data-level mutex defaults used by SharedStore.lock()
        "LOCK_TIMEOUT": _number(os.getenv("SHAREDSTATE_LOCK_TIMEOUT", "0")),
        "LOCK_INTERVAL": _number(os.getenv("SHAREDSTATE_LOCK_INTERVAL", "50000")),

        # Storage
        "READ_CHUNK_SIZE": int(os.getenv("SHAREDSTATE_READ_CHUNK_SIZE", str(32 * 1024))),

        # Demos
        "LOG_LEVEL": os.getenv("SHAREDSTATE_LOG_LEVEL", "WARNING").upper(),
        "DEMO_FILE": os.getenv("SHAREDSTATE_DEMO_FILE", "/tmp/demo.sync"),
    }
