# shop/usage.py
import functools
import inspect
import time

from .logger import get_logger

logger = get_logger(__name__)


def track_use_time(user_arg: str):
    """
    Add the wall time spent in the decorated method to the calling user's
    accumulated API use time.

    The decorated object records through its ``usage`` attribute (a
    UsageRepository); when that is None nothing is measured. ``user_arg`` names
    the parameter holding the calling User.
    """

    def decorator(func):
        sig = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            usage = getattr(self, "usage", None)
            if usage is None:
                return func(self, *args, **kwargs)

            start = time.monotonic()
            try:
                return func(self, *args, **kwargs)
            finally:
                elapsed_ms = int((time.monotonic() - start) * 1000)
                user = sig.bind(self, *args, **kwargs).arguments.get(user_arg)
                if user is not None:
                    try:
                        usage.add_use_time(user.id, elapsed_ms)
                        logger.debug(
                            "API use time: user=%s call=%s took=%dms",
                            user.username, func.__name__, elapsed_ms,
                        )
                    except Exception as e:
                        logger.warning(
                            "Failed to record API use time for user %s: %s",
                            user.id, e,
                        )

        return wrapper

    return decorator
