"""Summary of a conformance test suite report for WebSocket endpoints."""

from __future__ import annotations

import argparse
import functools
import json
import os
import re
import sys
from dataclasses import dataclass
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

STATUS_OK = "OK"
STATUS_INFORMATIONAL = "INFORMATIONAL"
STATUS_UNIMPLEMENTED = "UNIMPLEMENTED"
STATUS_NON_STRICT = "NON-STRICT"
STATUS_UNCLEAN = "UNCLEAN"
STATUS_FAILED = "FAILED"

_FAILING = frozenset({STATUS_UNCLEAN, STATUS_FAILED, STATUS_NON_STRICT})

_COUNTER_FIELDS = {
    STATUS_OK: "ok",
    STATUS_INFORMATIONAL: "informational",
    STATUS_NON_STRICT: "non_strict",
    STATUS_UNIMPLEMENTED: "unimplemented",
    STATUS_UNCLEAN: "unclean",
    STATUS_FAILED: "failed",
}

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MAX = 2**63 - 1

INDEX_HTML = """
<html>
<body>
<h1>Welcome to WebSocket test server!</h1>
<h4>Ready to Autobahn!</h4>
<a href="/report">Reports</a>
</body>
</html>
"""


def failing(behavior):
    """Report whether a case behaviour counts as a failure."""
    return behavior in _FAILING


@dataclass
class StatusCounter:
    """Number of cases per behaviour."""

    total: int = 0
    ok: int = 0
    informational: int = 0
    unimplemented: int = 0
    non_strict: int = 0
    unclean: int = 0
    failed: int = 0

    def inc(self, status):
        """Count one case with the given behaviour; unknown ones raise ValueError."""
        name = _COUNTER_FIELDS.get(status)
        if name is None:
            raise ValueError(f"unexpected status {status!r}")
        self.total += 1
        setattr(self, name, getattr(self, name) + 1)


def _must_int(segment):
    if not _INT_RE.fullmatch(segment):
        raise ValueError(f"invalid case id segment: {segment!r}")
    value = int(segment)
    if not -_INT64_MAX - 1 <= value <= _INT64_MAX:
        raise ValueError(f"case id segment out of range: {segment!r}")
    return value


def compare_by_segment(a, b):
    """Compare dotted case ids numerically segment by segment.

    When one id is a prefix of the other, the ids compare by the
    difference of their lengths, the longer one ordering first.
    """
    for left, right in zip(a.split("."), b.split(".")):
        x, y = _must_int(left), _must_int(right)
        if x != y:
            return x - y
    return len(b) - len(a)


def sort_by_segment(ids):
    """Return the case ids ordered by ``compare_by_segment``."""
    return sorted(ids, key=functools.cmp_to_key(compare_by_segment))


def load_json(path):
    """Decode the JSON document stored at ``path``."""
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def _quote(text):
    return json.dumps(text, ensure_ascii=False)


def _byte_len(text):
    return len(text.encode("utf-8"))


def _align(text):
    """Align tab separated cells into columns padded with one space."""
    rows = [line.split("\t") for line in text.split("\n")]
    widths = [[] for _ in rows]
    column = 0
    while any(len(row) - 1 > column for row in rows):
        start = 0
        while start < len(rows):
            if len(rows[start]) - 1 <= column:
                start += 1
                continue
            end = start
            while end < len(rows) and len(rows[end]) - 1 > column:
                end += 1
            width = max(len(rows[i][column]) for i in range(start, end)) + 1
            for i in range(start, end):
                widths[i].append(width)
            start = end
        column += 1
    return "\n".join(
        "".join(cell.ljust(width) for cell, width in zip(row[:-1], row_widths)) + row[-1]
        for row, row_widths in zip(rows, widths)
    )


def render_report(report, base, verbose=False):
    """Render the summary of a loaded report index.

    ``base`` is the directory the per-case report files are relative to.
    Returns the text and whether any case failed.
    """
    out = []
    failed = False
    for server in sorted(report):
        cases = report[server]
        server_failed = header_written = False
        counter = StatusCounter()
        for case_id in sort_by_segment(list(cases)):
            entry = cases[case_id]
            behavior = entry.get("behavior", "")
            details = load_json(os.path.join(base, entry.get("reportFile", "")))
            counter.inc(behavior)
            bad = failing(behavior)
            if bad:
                server_failed = failed = True
            if verbose or bad:
                if not header_written:
                    header_written = True
                    title = f"AGENT {_quote(server)}\n"
                    out.append(title)
                    out.append("=" * (_byte_len(title) - 1) + "\n")
                out.append(f"{server}\t{case_id}\t{behavior}\n")
            if bad:
                out.append(f"\tdesc:\t{details.get('description', '')}\n")
                out.append(f"\texp: \t{details.get('expectation', '')}\n")
                out.append(f"\tact: \t{details.get('result', '')}\n")
        if header_written:
            out.append("\n")
        status = STATUS_FAILED if server_failed else STATUS_OK
        summary = f"AGENT {_quote(server)} SUMMARY ({status})\n"
        out.append(summary)
        out.append("=" * (_byte_len(summary) - 1) + "\n")
        out.append(f"TOTAL:\t{counter.total}\n")
        out.append(f"{STATUS_OK}:\t{counter.ok}\n")
        out.append(f"{STATUS_INFORMATIONAL}:\t{counter.informational}\n")
        out.append(f"{STATUS_UNIMPLEMENTED}:\t{counter.unimplemented}\n")
        out.append(f"{STATUS_NON_STRICT}:\t{counter.non_strict}\n")
        out.append(f"{STATUS_UNCLEAN}:\t{counter.unclean}\n")
        out.append(f"{STATUS_FAILED}:\t{counter.failed}\n")
        out.append("\n")
    out.append(f"\n\nTEST {STATUS_FAILED if failed else STATUS_OK}\n\n")
    return _align("".join(out)), failed


def _make_handler(base, verbose):
    class _ReportHandler(SimpleHTTPRequestHandler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, directory=base, **kwargs)

        def log_message(self, format, *args):
            if verbose:
                super().log_message(format, *args)

        def _route(self, head):
            if verbose:
                sys.stderr.write(f"request to {self.path}\n")
            path = urlsplit(self.path).path
            if path.startswith("/report/"):
                self.path = self.path[len("/report"):]
                if head:
                    super().do_HEAD()
                else:
                    super().do_GET()
                return
            if path != "/":
                self.send_response(404)
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            body = INDEX_HTML.encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if not head:
                self.wfile.write(body)

        def do_GET(self):
            self._route(head=False)

        def do_HEAD(self):
            self._route(head=True)

    return _ReportHandler


def _serve(addr, base, verbose):
    host, _, port = addr.rpartition(":")
    server = ThreadingHTTPServer((host.strip("[]"), int(port)), _make_handler(base, verbose))
    with server:
        server.serve_forever()


def main(argv=None):
    """Print the report summary to stderr; return 1 if any case failed."""
    parser = argparse.ArgumentParser(prog="lowws-report")
    parser.add_argument("-verbose", "--verbose", action="store_true", help="be verbose")
    parser.add_argument("-http", "--http", default="", help="open web browser instead")
    parser.add_argument("report", nargs="?", help="path of the report index")
    args = parser.parse_args(argv)

    if args.report is None:
        sys.stderr.write(f"Usage: {parser.prog} [options] <report-path>\n")
        return 1

    base = os.path.dirname(args.report) or "."

    if args.http:
        try:
            _serve(args.http, base, args.verbose)
        except (OSError, ValueError) as exc:
            sys.stderr.write(f"{exc}\n")
            return 1
        return 0

    try:
        text, failed = render_report(load_json(args.report), base, args.verbose)
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 1
    sys.stderr.write(text)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())