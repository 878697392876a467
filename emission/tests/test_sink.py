"""Unit tests for sink.py."""

import os
import tempfile
import unittest

from emission.errors import SinkUnavailableError
from emission.sink import OutputSink, open_sink


class _BrokenStream:
    def __init__(self):
        self.writes = 0

    def write(self, text):
        self.writes += 1
        raise OSError(28, "No space left on device")

    def flush(self):
        pass


class TestOutputSink(unittest.TestCase):
    def test_write_failure_reported_once(self):
        stream = _BrokenStream()
        sink = OutputSink(stream, name="full.yaml")
        with self.assertLogs("emission.sink", level="ERROR") as logs:
            sink.write("a: 1\n")
            sink.write("b: 2\n")
        self.assertTrue(sink.failed)
        self.assertEqual(stream.writes, 1)
        self.assertEqual(len(logs.records), 1)

    def test_counts_utf8_bytes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out.yaml")
            with open_sink(path) as sink:
                sink.write("name: é\n")
            self.assertEqual(sink.bytes_written, 9)
            self.assertFalse(sink.failed)
            with open(path, encoding="utf-8") as f:
                self.assertEqual(f.read(), "name: é\n")


class TestOpenSink(unittest.TestCase):
    def test_stdout_destinations(self):
        self.assertEqual(open_sink(None).name, "<stdout>")
        self.assertEqual(open_sink("-").name, "<stdout>")

    def test_unopenable_path_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "missing", "out.yaml")
            with self.assertRaises(SinkUnavailableError):
                open_sink(path)


if __name__ == "__main__":
    unittest.main()
