import json  # NDJSON payload encoding
import logging  # level check
import time  # event timestamps

def debug_event(logger, location, message, **data):  # Emit one compact-JSON debug record if DEBUG is on.
    if not logger.isEnabledFor(logging.DEBUG):
        return
    payload = {
        "location": location,
        "message": message,
        "data": {k: _jsonable(v) for k, v in data.items()},
        "timestamp": int(time.time() * 1000),
    }
    logger.debug(json.dumps(payload, separators=(",", ":")))

def _jsonable(v):  # Field elements and bytes are logged as strings.
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    if isinstance(v, (list, tuple)):
        return [_jsonable(x) for x in v]
    if isinstance(v, (str, int, float, bool)) or v is None:
        return v
    return str(v)
