"""
Configurable retry policy, executed through tenacity
"""

import time
from dataclasses import dataclass, field
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError
from tenacity import Retrying, retry_if_exception, stop_after_attempt


def fixed_backoff(delay_seconds: float) -> Callable[[int], float]:
    """Same delay before every retry"""
    return lambda attempt: delay_seconds


def exponential_backoff(base_seconds: float, max_seconds: float = 30.0) -> Callable[[int], float]:
    return lambda attempt: min(max_seconds, base_seconds * (2 ** (attempt - 1)))


def is_transient_storage_error(exc: BaseException) -> bool:
    """Network and service errors are worth retrying, client mistakes are not"""
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        return code not in ("AccessDenied", "InvalidAccessKeyId", "NoSuchBucket", "SignatureDoesNotMatch")
    return isinstance(exc, (BotoCoreError, ConnectionError, TimeoutError))


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: fixed_backoff(1.0))
    retry_on: Callable[[BaseException], bool] = is_transient_storage_error
    sleep: Callable[[float], None] = time.sleep

    def retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=lambda retry_state: self.backoff(retry_state.attempt_number),
            retry=retry_if_exception(self.retry_on),
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn, *args, **kwargs):
        return self.retrying()(fn, *args, **kwargs)
