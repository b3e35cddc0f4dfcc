# tools/trace_stream.py
# Usage: python3 tools/trace_stream.py 8.8.8.8 [--fake] [--max-duration 30]
# Prints the SSE frames a browser would receive, without the HTTP server.
import argparse
import asyncio
import sys

from utrace.config import Settings
from utrace.errors import ValidationError
from utrace.logging_config import setup_logging
from utrace.prober.fake import FakeRunner, script_from_output
from utrace.prober.subprocess_runner import SubprocessRunner
from utrace.stream.controller import SessionController
from utrace.stream.streamer import EventStreamer

FAKE_OUTPUT = b"""traceroute to 8.8.8.8 (8.8.8.8), 30 hops max, 60 byte packets
 1  192.168.1.1  1.123 ms  1.004 ms  0.981 ms
 2  * * *
 3  100.64.0.1  8.412 ms  8.390 ms  8.377 ms
 4  dns.google (8.8.8.8)  12.345 ms  12.001 ms  11.998 ms
"""


class StdoutSink:
    async def write(self, data: bytes) -> None:
        sys.stdout.write(data.decode("utf-8"))
        sys.stdout.flush()

    async def write_eof(self, data: bytes = b"") -> None:
        sys.stdout.flush()


async def run(target: str, fake: bool, traceroute_bin: str, max_duration):
    runner = FakeRunner(script_from_output(FAKE_OUTPUT, chunk_size=37), delay=0.05) if fake else SubprocessRunner()
    controller = SessionController(runner, EventStreamer(StdoutSink()),
                                   traceroute_bin=traceroute_bin, max_duration=max_duration,
                                   request_ip="cli")
    try:
        controller.validate(target)
    except ValidationError as e:
        print(f"rejected ({e.status}): {e.message}", file=sys.stderr)
        return 2
    session = await controller.run()
    print(f"# closed: {session.close_reason}, exit code {session.exit_code}, "
          f"{session.hops} hops, {session.errors} errors", file=sys.stderr)
    return 0 if session.exit_code == 0 else 1


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("target")
    ap.add_argument("--fake", action="store_true", help="replay canned output instead of running traceroute")
    ap.add_argument("--bin", default=Settings().traceroute_bin)
    ap.add_argument("--max-duration", type=float, default=None)
    ap.add_argument("--log-level", default="warning")
    args = ap.parse_args()

    setup_logging(args.log_level)
    sys.exit(asyncio.run(run(args.target, args.fake, args.bin, args.max_duration)))


if __name__ == "__main__":
    main()
