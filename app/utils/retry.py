# app/utils/retry.py
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import requests

from app.domain.errors import GatewayError


def _is_transient_gateway_error(exc: BaseException) -> bool:
    return isinstance(exc, GatewayError) and exc.transient


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


#tylko dla metod odczytu
def db_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception(_is_transient_gateway_error),
    )
