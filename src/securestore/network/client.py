"""
Stream a request body to a file server over a plain TCP line protocol.

Protocol:
  Client -> "PUT <remote_name> <size>\n"
  Server -> "READY\n"  (or "ERROR: ...\n")
  Client -> exactly <size> bytes
  Server -> final textual reply, then closes
"""
import logging
import socket
from typing import Optional

from .progress import ProgressListener, ProgressTrackingBody, RequestBody

logger = logging.getLogger(__name__)

READ_BUF = 1024


class SocketSink:
    """Sink that sends every write straight to a connected socket."""

    __slots__ = ("sock",)

    def __init__(self, sock):
        self.sock = sock

    def write(self, data: bytes) -> int:
        self.sock.sendall(data)
        return len(data)

    def flush(self) -> None:
        # sendall leaves nothing buffered on our side
        pass


def _read_line(sock) -> str:
    resp = b""
    while not resp.endswith(b"\n"):
        chunk = sock.recv(READ_BUF)
        if not chunk:
            raise IOError("no response from server")
        resp += chunk
    return resp.decode().strip()


def _read_until_close(sock) -> str:
    final = b""
    while True:
        try:
            chunk = sock.recv(READ_BUF)
        except socket.timeout:
            break
        if not chunk:
            break
        final += chunk
    return final.decode(errors="ignore").strip()


def put_body(ip, port, remote_name, body: RequestBody, listener: Optional[ProgressListener] = None, timeout=60):
    """
    Upload ``body`` to the server as ``remote_name``.

    The body must know its length up front since the protocol announces it.
    ``listener`` receives ``(bytes_sent, total)`` while the body streams.
    Socket errors propagate; protocol-level refusals come back as
    ``{"status": "error", ...}``.
    """
    size = body.content_length()
    if size < 0:
        raise ValueError("put_body needs a body with a known content length")

    tracked = ProgressTrackingBody(body, listener)
    logger.info("Uploading %s -> %s:%s (%d bytes)", remote_name, ip, port, size)
    with socket.create_connection((ip, port), timeout=timeout) as s:
        s.settimeout(timeout)
        s.sendall(f"PUT {remote_name} {size}\n".encode())

        resp_text = _read_line(s)
        if resp_text.upper().startswith("ERROR"):
            logger.warning("Server refused upload of %s: %s", remote_name, resp_text)
            return {"status": "error", "error": resp_text}
        if not resp_text.upper().startswith("READY"):
            logger.warning("Unexpected server response: %s", resp_text)
            return {"status": "error", "error": resp_text}

        tracked.write_to(SocketSink(s))

        final_text = _read_until_close(s)
        logger.info("Upload of %s finished (%d bytes): %s", remote_name, tracked.bytes_written, final_text)
        return {"status": "ok", "reply": final_text, "bytes_sent": tracked.bytes_written}
