from lighter_service.api.app import create_app
from lighter_service.api.runner import EmbeddedServer, bind_socket, build_server

__all__ = ["EmbeddedServer", "bind_socket", "build_server", "create_app"]
