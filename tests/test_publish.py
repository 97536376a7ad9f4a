"""Tests for remote progress publishing."""

import socket
import time
from unittest.mock import Mock

import pytest

from e2sparse.config.settings import StompConfig
from e2sparse.services import publish
from e2sparse.services.publish import (
    ChannelPublisher,
    NullPublisher,
    StompPublisher,
    create_publisher,
)
from e2sparse.storage.exceptions import ConfigError, PublishError


@pytest.fixture
def stomp_config():
    return StompConfig(server="broker", port=61613, user="u", password="p", timeout=0.3)


@pytest.fixture
def reachable_broker(mocker):
    """Make the TCP reachability check succeed without a network."""
    return mocker.patch("e2sparse.services.publish.socket.create_connection")


@pytest.fixture
def silent_broker():
    """A local listener that accepts TCP connections and never answers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(5)
    yield server.getsockname()[1]
    server.close()


class TestStompPublisher:
    """Tests for the stomp.py backed publisher."""

    def test_connect(self, stomp_config, reachable_broker):
        connection = Mock()
        connection.is_connected.return_value = True
        publisher = StompPublisher(stomp_config, connection)

        publisher.connect()

        reachable_broker.assert_called_once_with(("broker", 61613), 0.3)
        connection.connect.assert_called_once_with("u", "p", wait=False)

    def test_connection_created_from_config(self, stomp_config, mocker):
        factory = mocker.patch("e2sparse.services.publish.stomp.Connection")

        StompPublisher(stomp_config)

        factory.assert_called_once_with([("broker", 61613)], reconnect_attempts_max=1)

    def test_unreachable_server_is_config_error(self, stomp_config, reachable_broker):
        reachable_broker.side_effect = ConnectionRefusedError("refused")
        connection = Mock()
        publisher = StompPublisher(stomp_config, connection)

        with pytest.raises(ConfigError, match="cannot connect to stomp server broker:61613"):
            publisher.connect()
        connection.connect.assert_not_called()

    def test_connect_failure_is_config_error(self, stomp_config, reachable_broker):
        connection = Mock()
        connection.connect.side_effect = OSError("reset")
        publisher = StompPublisher(stomp_config, connection)

        with pytest.raises(ConfigError, match="reset"):
            publisher.connect()

    def test_no_answer_times_out(self, stomp_config, reachable_broker):
        connection = Mock()
        connection.is_connected.return_value = False
        publisher = StompPublisher(stomp_config, connection)

        started = time.monotonic()
        with pytest.raises(ConfigError, match="no answer within 0.3s"):
            publisher.connect()

        assert time.monotonic() - started < 3
        connection.transport.disconnect_socket.assert_called_once()

    def test_publish(self, stomp_config):
        connection = Mock()
        publisher = StompPublisher(stomp_config, connection)

        publisher.publish("/queue/progress", "10.00%;5.00")

        connection.send.assert_called_once_with(
            destination="/queue/progress", body="10.00%;5.00"
        )

    def test_publish_failure(self, stomp_config):
        connection = Mock()
        connection.send.side_effect = OSError("broken pipe")
        publisher = StompPublisher(stomp_config, connection)

        with pytest.raises(PublishError) as exc_info:
            publisher.publish("/queue/progress", "x")
        assert exc_info.value.channel == "/queue/progress"

    def test_close_swallows_disconnect_errors(self, stomp_config):
        connection = Mock()
        connection.disconnect.side_effect = OSError("gone")
        publisher = StompPublisher(stomp_config, connection)

        publisher.close()

        connection.disconnect.assert_called_once()


class TestChannelPublisher:
    def test_send_uses_bound_channel(self):
        inner = Mock()
        channel = ChannelPublisher(inner, "/topic/backup")

        channel.send("50.00%;1.00")
        channel.close()

        inner.publish.assert_called_once_with("/topic/backup", "50.00%;1.00")
        inner.close.assert_called_once()

    def test_null_publisher_ignores_messages(self):
        channel = ChannelPublisher(NullPublisher(), "/topic/backup")

        channel.send("ignored")
        channel.close()


class TestCreatePublisher:
    """Tests for building the publisher from configuration."""

    def test_no_channel(self):
        channel = create_publisher(None)
        assert isinstance(channel.publisher, NullPublisher)

    def test_connected_publisher(self, stomp_config, reachable_broker, mocker):
        mocker.patch("e2sparse.services.publish.stomp.Connection")

        channel = create_publisher("/queue/progress", stomp_config)

        assert channel.channel == "/queue/progress"
        assert isinstance(channel.publisher, StompPublisher)

    def test_missing_config_disables_publishing(self, temp_config_file):
        channel = create_publisher("/queue/progress")

        assert isinstance(channel.publisher, NullPublisher)
        assert channel.channel == "/queue/progress"

    def test_connection_failure_disables_publishing(self, stomp_config, reachable_broker, mocker):
        connection = mocker.patch("e2sparse.services.publish.stomp.Connection").return_value
        connection.connect.side_effect = OSError("refused")

        channel = create_publisher("/queue/progress", stomp_config)

        assert isinstance(channel.publisher, NullPublisher)

    def test_silent_server_disables_publishing(self, silent_broker):
        config = StompConfig(server="127.0.0.1", port=silent_broker, timeout=0.5)

        started = time.monotonic()
        channel = create_publisher("/queue/progress", config)

        assert isinstance(channel.publisher, NullPublisher)
        assert time.monotonic() - started < 5

    def test_loads_config_file(self, temp_config_file, reachable_broker, mocker):
        temp_config_file.parent.mkdir(parents=True)
        temp_config_file.write_text("stomp:\n  server: cfg-broker\n  port: 1234\n")
        factory = mocker.patch("e2sparse.services.publish.stomp.Connection")

        channel = publish.create_publisher("/queue/progress")

        assert isinstance(channel.publisher, StompPublisher)
        factory.assert_called_once_with([("cfg-broker", 1234)], reconnect_attempts_max=1)
