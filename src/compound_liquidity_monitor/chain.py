from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import aiohttp
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError, EncodingError, ParseError
from eth_abi.grammar import parse as parse_abi_type
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from .errors import RpcFailure

logger = logging.getLogger(__name__)


def argument_types(signature: str) -> list[str]:
    start = signature.find("(")
    if start <= 0 or not signature.endswith(")"):
        raise ValueError(f"Malformed function signature: {signature!r}")
    if signature[start:] == "()":
        return []
    try:
        parsed = parse_abi_type(signature[start:])
    except ParseError as exc:
        raise ValueError(f"Malformed function signature: {signature!r}") from exc
    return [component.to_type_str() for component in parsed.components]


def encode_call(signature: str, args: Sequence[Any] = ()) -> str:
    selector = function_signature_to_4byte_selector(signature)
    types = argument_types(signature)
    if len(types) != len(args):
        raise ValueError(f"{signature} expects {len(types)} arguments, got {len(args)}")
    encoded = abi_encode(types, list(args)) if types else b""
    return "0x" + (selector + encoded).hex()


class ChainClient:
    """Read-only contract calls (``eth_call``) through web3's async provider."""

    def __init__(self, rpc_url: str, timeout: float = 15.0, w3: Any | None = None) -> None:
        self.rpc_url = rpc_url
        self._owns_provider = w3 is None
        if w3 is None:
            # Providers open their HTTP session lazily, on the first request.
            w3 = AsyncWeb3(
                AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
                    exception_retry_configuration=None,
                )
            )
        self._w3 = w3

    async def close(self) -> None:
        if self._owns_provider:
            await self._w3.provider.disconnect()

    async def call(self, address: str, signature: str, *args: Any, block: str = "latest") -> bytes:
        try:
            data = encode_call(signature, args)
            transaction = {"to": to_checksum_address(address), "data": data}
        except (ValueError, EncodingError) as exc:
            raise RpcFailure(address, signature, f"cannot encode call: {exc}") from exc

        logger.debug("eth_call %s %s", address, signature)
        try:
            result = await self._w3.eth.call(transaction, block)
        except (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise RpcFailure(address, signature, f"{type(exc).__name__}: {exc}") from exc
        return bytes(result)

    async def call_decoded(self, address: str, signature: str, returns: Sequence[str], *args: Any) -> tuple[Any, ...]:
        raw = await self.call(address, signature, *args)
        return decode_result(address, signature, returns, raw)

    async def call_single(self, address: str, signature: str, return_type: str, *args: Any) -> Any:
        (value,) = await self.call_decoded(address, signature, [return_type], *args)
        return value


def decode_result(address: str, signature: str, returns: Sequence[str], raw: bytes) -> tuple[Any, ...]:
    # string results are strict UTF-8; bad bytes raise UnicodeDecodeError (a ValueError).
    try:
        values = abi_decode(list(returns), raw)
    except (DecodingError, ValueError) as exc:
        raise RpcFailure(address, signature, f"cannot decode return data 0x{raw.hex()}: {exc}") from exc
    return tuple(to_checksum_address(v) if t == "address" else v for t, v in zip(returns, values))
