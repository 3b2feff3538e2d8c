import time
from functools import wraps

from ..core.logger import logger


def log_execution_time(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
            end_time = time.time()
            logger.info(
                f"Function {func.__name__} took {end_time - start_time:.2f} seconds"
            )
            return result
        except Exception as e:
            end_time = time.time()
            logger.error(
                f"Function {func.__name__} failed after {end_time - start_time:.2f} seconds: {str(e)}"
            )
            raise

    return wrapper
