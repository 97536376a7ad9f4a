"""Remote progress publishing over STOMP.

Progress is published as a short ``"<pct>%;<eta>"`` string to a named
destination. Publishing is best effort: configuration and connection problems
disable it, runtime failures are logged by the caller and ignored.
"""

from __future__ import annotations

import socket
import time
from typing import Optional, Protocol

import stomp

from e2sparse.config.settings import StompConfig, load_publish_config
from e2sparse.logging import LoggerFactory
from e2sparse.storage.exceptions import ConfigError, PublishError

CONNECT_POLL_SECONDS = 0.1


class Publisher(Protocol):
    def publish(self, channel: str, message: str) -> None:
        ...

    def close(self) -> None:
        ...


class NullPublisher:
    """Publisher used when no remote channel is configured."""

    def publish(self, channel: str, message: str) -> None:
        return None

    def close(self) -> None:
        return None


class StompPublisher:
    """Publisher backed by a stomp.py connection.

    Connecting is bounded by ``config.timeout``: the broker must accept the
    TCP connection and answer CONNECT within that time. Once connected, reads
    block without a timeout, since the broker does not answer SEND frames.
    """

    def __init__(self, config: StompConfig, connection=None):
        self.config = config
        self.connection = connection or stomp.Connection(
            [(config.server, config.port)], reconnect_attempts_max=1
        )
        self.log = LoggerFactory.for_publish()

    @property
    def address(self) -> str:
        return f"{self.config.server}:{self.config.port}"

    def connect(self) -> None:
        """Connect and authenticate.

        Raises:
            ConfigError: If the server cannot be reached, rejects the login or
                does not answer within the timeout
        """
        try:
            socket.create_connection(
                (self.config.server, self.config.port), self.config.timeout
            ).close()
            self.connection.connect(self.config.user, self.config.password, wait=False)
        except Exception as error:
            raise ConfigError(
                f"cannot connect to stomp server {self.address}: {error}"
            ) from error

        deadline = time.monotonic() + self.config.timeout
        while not self.connection.is_connected():
            if time.monotonic() >= deadline:
                self._abort()
                raise ConfigError(
                    f"cannot connect to stomp server {self.address}: no answer "
                    f"within {self.config.timeout:g}s"
                )
            time.sleep(CONNECT_POLL_SECONDS)
        self.log.info(f"Connected to stomp server {self.address}")

    def _abort(self) -> None:
        # disconnect() is a no-op before CONNECTED; close the socket directly
        try:
            self.connection.transport.disconnect_socket()
        except Exception as error:
            self.log.warning(f"Error while closing stomp socket: {error}")

    def publish(self, channel: str, message: str) -> None:
        try:
            self.connection.send(destination=channel, body=message)
        except Exception as error:
            raise PublishError(f"publish to {channel} failed: {error}", channel) from error
        self.log.debug(f"Published {message!r} to {channel}")

    def close(self) -> None:
        try:
            self.connection.disconnect()
        except Exception as error:
            self.log.warning(f"Error while disconnecting from stomp server: {error}")


class ChannelPublisher:
    """A publisher bound to one channel, as handed to the progress sink."""

    def __init__(self, publisher: Publisher, channel: str):
        self.publisher = publisher
        self.channel = channel

    def send(self, message: str) -> None:
        self.publisher.publish(self.channel, message)

    def close(self) -> None:
        self.publisher.close()


def create_publisher(
    channel: Optional[str], config: Optional[StompConfig] = None
) -> ChannelPublisher:
    """Build a connected channel publisher.

    Without a channel, or when configuration or connection fails, the result
    wraps a NullPublisher. Failures are logged and never abort the copy.
    """
    if not channel:
        return ChannelPublisher(NullPublisher(), "")
    log = LoggerFactory.for_publish(channel)
    try:
        if config is None:
            config = load_publish_config()
        publisher = StompPublisher(config)
        publisher.connect()
    except ConfigError as error:
        log.error(f"Remote progress disabled: {error}")
        return ChannelPublisher(NullPublisher(), channel)
    return ChannelPublisher(publisher, channel)
