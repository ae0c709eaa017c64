"""HTTPS server answering admission reviews for the device webhooks."""

from __future__ import annotations

import argparse
import base64
import json
import logging
import ssl
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Mapping

from .admission import (
    CA_NAME,
    MUTATION_PATH,
    NAMESPACE,
    PORT,
    VALIDATION_PATH,
    build_webhook_configurations,
)
from .indexer import register_indexers
from .store import Clients
from .webhook import mutation, validation

log = logging.getLogger(__name__)

TLS_CERT_KEY = "tls.crt"
CIPHERS = ":".join(
    (
        "ECDHE-ECDSA-AES128-GCM-SHA256",
        "ECDHE-RSA-AES128-GCM-SHA256",
        "ECDHE-ECDSA-AES256-GCM-SHA384",
        "ECDHE-RSA-AES256-GCM-SHA384",
        "ECDHE-ECDSA-CHACHA20-POLY1305",
        "ECDHE-RSA-CHACHA20-POLY1305",
    )
)


class AdmissionWebhookServer:
    """Serve the mutating and validating webhooks over the given caches."""

    def __init__(self, clients: Clients, host: str = "0.0.0.0", port: int = PORT) -> None:
        self.clients = clients
        self.host = host
        self.port = port
        register_indexers(clients)
        self._mutation, self.mutation_resources = mutation(clients)
        self._validation, self.validation_resources = validation(clients)
        self.webhook_configurations: tuple[dict[str, Any], dict[str, Any]] | None = None

    def dispatch(self, path: str, body: bytes) -> tuple[int, bytes]:
        """Answer a request body posted to a path; return status and response body."""
        routers = {MUTATION_PATH: self._mutation, VALIDATION_PATH: self._validation}
        router = routers.get(path)
        if router is None:
            return 404, b"not found"
        try:
            review = json.loads(body)
        except ValueError:
            return 400, b"invalid admission review"
        if not isinstance(review, dict):
            return 400, b"invalid admission review"
        return 200, json.dumps(router.handle(review)).encode()

    def on_ca_secret(self, secret: Mapping[str, Any] | None) -> tuple[dict, dict] | None:
        """Build the webhook configurations when the CA secret carries a certificate."""
        if not secret:
            return None
        metadata = secret.get("metadata") or {}
        cert = (secret.get("data") or {}).get(TLS_CERT_KEY)
        if metadata.get("name") != CA_NAME or metadata.get("namespace") != NAMESPACE or not cert:
            return None
        ca_bundle = base64.b64decode(cert)
        self.webhook_configurations = build_webhook_configurations(
            ca_bundle, self.mutation_resources, self.validation_resources
        )
        return self.webhook_configurations

    def listen_and_serve(self, certfile: str, keyfile: str) -> None:
        """Serve HTTPS until interrupted."""
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self) -> None:  # noqa: N802
                length = int(self.headers.get("Content-Length") or 0)
                status, body = server.dispatch(self.path, self.rfile.read(length))
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.set_ciphers(CIPHERS)
        context.load_cert_chain(certfile, keyfile)
        with ThreadingHTTPServer((self.host, self.port), Handler) as httpd:
            httpd.socket = context.wrap_socket(httpd.socket, server_side=True)
            log.info("listening on %s:%d", self.host, self.port)
            httpd.serve_forever()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="PCI device admission webhook server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--cert", required=True)
    parser.add_argument("--key", required=True)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    server = AdmissionWebhookServer(Clients(), args.host, args.port)
    try:
        server.listen_and_serve(args.cert, args.key)
    except KeyboardInterrupt:
        pass
    return 0