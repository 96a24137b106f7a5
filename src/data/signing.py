"""
Request signing for the Binance USDT-M futures REST API.

Signed endpoints expect the parameters as a query string in the order they
were supplied (never sorted), a timestamp taken from the exchange clock,
and an HMAC-SHA256 hex digest of that exact string appended as the
"signature" parameter. The API key travels in the X-MBX-APIKEY header.
"""

import hashlib
import hmac
from typing import Iterable, List, Tuple, Union
from urllib.parse import urlencode

API_KEY_HEADER = "X-MBX-APIKEY"

Params = Iterable[Tuple[str, Union[str, int, float]]]


def build_query_string(params: Params) -> str:
    """
    Serialize key/value pairs as key=value joined by '&', in insertion order.

    Examples:
        >>> build_query_string([("symbol", "XRPUSDT"), ("side", "BUY"), ("timestamp", 1)])
        'symbol=XRPUSDT&side=BUY&timestamp=1'
    """
    return urlencode(list(params))


def sign_query_string(query_string: str, secret_key: str) -> str:
    """
    HMAC-SHA256 hex digest of the query string keyed with the secret.

    Deterministic: the same string and secret always give the same digest.
    """
    return hmac.new(
        secret_key.encode("utf-8"),
        query_string.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def signed_query_string(params: Params, timestamp: int, secret_key: str) -> str:
    """
    Append the exchange timestamp, sign, and append the signature.

    Args:
        params: Request parameters in the order they must be sent
        timestamp: Exchange server time in milliseconds
        secret_key: Account secret key

    Returns:
        "<params>&timestamp=<ms>&signature=<hex>"
    """
    pairs: List[Tuple[str, Union[str, int, float]]] = list(params)
    pairs.append(("timestamp", int(timestamp)))
    query_string = build_query_string(pairs)
    signature = sign_query_string(query_string, secret_key)
    return f"{query_string}&signature={signature}"
