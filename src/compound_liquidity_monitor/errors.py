from __future__ import annotations


class MonitorError(Exception):
    pass


class ConfigError(MonitorError, ValueError):
    pass


class RpcFailure(MonitorError):
    def __init__(self, address: str, method: str, reason: str) -> None:
        super().__init__(f"{method} on {address} failed: {reason}")
        self.address = address
        self.method = method
        self.reason = reason


class DeliveryFailure(MonitorError):
    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"Webhook delivery to {url} failed: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


class TransactionError(MonitorError):
    pass
