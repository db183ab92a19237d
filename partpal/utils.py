# partpal/utils.py
"""Shared utilities: logging setup, the retry decorator and a few
query-string helpers used by both the HTTP layer and the query engine.
"""
import os
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("partpal")

def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry

def mask_url(url: str) -> str:
    """Hide the password part of a database URL for log output."""
    if not url or "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    creds, host = rest.rsplit("@", 1)
    if ":" not in creds:
        return url
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:****@{host}"

def split_multi(values):
    """Flatten repeated and comma separated query values into one list."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    out = []
    for v in values:
        if v is None:
            continue
        out.extend(s.strip() for s in str(v).split(",") if s.strip())
    return out
